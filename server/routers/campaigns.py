"""Campaign dispatch routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from core.container import container
from services.workflow import WorkflowService
from core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


class ProcessQueueRequest(BaseModel):
    campaign_id: Optional[str] = None


def get_workflow_service() -> WorkflowService:
    return container.workflow_service()


@router.post("/process-queue")
async def process_queue(
    request: Optional[ProcessQueueRequest] = None,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Send today's quota of pending leads for every active campaign."""
    campaign_id = request.campaign_id if request else None
    try:
        return await workflow_service.process_campaign_queue(campaign_id=campaign_id)
    except Exception as e:
        logger.error("Campaign queue failed", campaign_id=campaign_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})
