"""Workflow execution routes."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import List, Optional

from core.container import container
from services.execution import BatchQueryError
from services.workflow import WorkflowService, WorkflowNotFoundError, EnrollmentError
from core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/workflows", tags=["workflows"])


class ProcessBatchRequest(BaseModel):
    workflow_id: Optional[str] = None


class EnrollRequest(BaseModel):
    # None enrolls the workflow's trigger list
    contact_ids: Optional[List[str]] = None


def get_workflow_service() -> WorkflowService:
    return container.workflow_service()


@router.post("/process-batch")
async def process_batch(
    request: Optional[ProcessBatchRequest] = None,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Advance all due executions by one node."""
    workflow_id = request.workflow_id if request else None
    try:
        return await workflow_service.process_workflow_batch(workflow_id=workflow_id)
    except BatchQueryError as e:
        logger.error("Workflow batch failed", workflow_id=workflow_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/{workflow_id}/enroll")
async def enroll(
    workflow_id: str,
    request: Optional[EnrollRequest] = None,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Enroll contacts (or the workflow's trigger list) at the start node."""
    try:
        if request and request.contact_ids is not None:
            return await workflow_service.enroll_contacts(workflow_id, request.contact_ids)
        return await workflow_service.enroll_list(workflow_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EnrollmentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/executions/{execution_id}/logs")
async def execution_logs(
    execution_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Audit trail of one execution."""
    logs = await workflow_service.get_execution_logs(execution_id)
    return {"execution_id": execution_id, "logs": logs}
