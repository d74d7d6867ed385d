"""HTTP route tests with the workflow service swapped out."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from main import app
from routers import campaigns, workflow
from services.execution import BatchQueryError
from services.workflow import EnrollmentError, WorkflowNotFoundError


@pytest.fixture
def service():
    fake = MagicMock()
    fake.process_workflow_batch = AsyncMock(return_value={"processed": 1, "skipped": 0, "failed": 0, "total": 1})
    fake.process_campaign_queue = AsyncMock(return_value={"processed": 0, "results": []})
    fake.enroll_contacts = AsyncMock(return_value={"enrolled": 1, "execution_ids": ["e-1"]})
    fake.enroll_list = AsyncMock(return_value={"enrolled": 3, "execution_ids": ["e-1", "e-2", "e-3"]})
    fake.get_execution_logs = AsyncMock(return_value=[{"node_id": "n-1", "action": "start"}])
    return fake


@pytest.fixture
def client(service):
    app.dependency_overrides[workflow.get_workflow_service] = lambda: service
    app.dependency_overrides[campaigns.get_workflow_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWorkflowRoutes:

    def test_process_batch(self, client, service):
        response = client.post("/api/workflows/process-batch")

        assert response.status_code == 200
        assert response.json() == {"processed": 1, "skipped": 0, "failed": 0, "total": 1}
        service.process_workflow_batch.assert_awaited_once_with(workflow_id=None)

    def test_process_batch_for_one_workflow(self, client, service):
        client.post("/api/workflows/process-batch", json={"workflow_id": "wf-1"})

        service.process_workflow_batch.assert_awaited_once_with(workflow_id="wf-1")

    def test_selection_failure_is_500(self, client, service):
        service.process_workflow_batch.side_effect = BatchQueryError("database is locked")

        response = client.post("/api/workflows/process-batch")

        assert response.status_code == 500
        assert response.json() == {"error": "database is locked"}

    def test_enroll_contacts(self, client, service):
        response = client.post("/api/workflows/wf-1/enroll", json={"contact_ids": ["c-1"]})

        assert response.json()["enrolled"] == 1
        service.enroll_contacts.assert_awaited_once_with("wf-1", ["c-1"])

    def test_enroll_without_body_uses_trigger_list(self, client, service):
        response = client.post("/api/workflows/wf-1/enroll")

        assert response.json()["enrolled"] == 3
        service.enroll_list.assert_awaited_once_with("wf-1")

    def test_enroll_errors(self, client, service):
        service.enroll_list.side_effect = WorkflowNotFoundError("Workflow not found: wf-x")
        assert client.post("/api/workflows/wf-x/enroll").status_code == 404

        service.enroll_list.side_effect = EnrollmentError("Workflow wf-1 has no trigger list")
        response = client.post("/api/workflows/wf-1/enroll")
        assert response.status_code == 400
        assert response.json()["detail"] == "Workflow wf-1 has no trigger list"

    def test_execution_logs(self, client):
        response = client.get("/api/workflows/executions/e-1/logs")

        assert response.json() == {"execution_id": "e-1", "logs": [{"node_id": "n-1", "action": "start"}]}


class TestCampaignRoutes:

    def test_process_queue(self, client, service):
        response = client.post("/api/campaigns/process-queue", json={"campaign_id": "camp-1"})

        assert response.status_code == 200
        assert response.json() == {"processed": 0, "results": []}
        service.process_campaign_queue.assert_awaited_once_with(campaign_id="camp-1")

    def test_queue_failure_is_500(self, client, service):
        service.process_campaign_queue.side_effect = RuntimeError("boom")

        response = client.post("/api/campaigns/process-queue")

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}
