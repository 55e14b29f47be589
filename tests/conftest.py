"""
Shared fixtures: a fake Flow service that drives the manager without Salesforce.
"""
import pytest

from flow_version_manager.errors import DeleteRequestError, QueryError
from flow_version_manager.manager import FlowVersionManager
from flow_version_manager.models import DeleteResponse, DeletionResult, FlowDefinition, FlowPage, FlowVersion


def make_flow(n, process_type="AutoLaunchedFlow", active=True, label=None):
    return FlowDefinition(
        id=f"300{n:012d}",
        developer_name=f"Flow_{n:03d}",
        label=label or f"Flow {n:03d}",
        process_type=process_type,
        active_version_id=f"301{n:012d}" if active else None,
        is_active=active,
    )


def make_versions(flow_id, active_count=1, inactive_count=3):
    versions = []
    number = active_count + inactive_count
    for i in range(active_count + inactive_count):
        versions.append(FlowVersion(
            id=f"{flow_id}_v{number}",
            flow_id=flow_id,
            version_number=number,
            is_active=i < active_count,
            api_version="60.0",
            last_modified_date="2024-03-05T10:15:00.000+0000",
            process_type="AutoLaunchedFlow",
        ))
        number -= 1
    return versions


class FakeFlowService:
    """Stands in for SalesforceFlowService; records every call."""

    instance_url = "https://example.my.salesforce.com"

    def __init__(self, flows=None, page_size=50):
        self.flows = flows if flows is not None else [make_flow(i) for i in range(1, 4)]
        self.page_size = page_size
        self.access = True
        self.versions = {}
        self.page_calls = []
        self.version_calls = []
        self.delete_calls = []
        self.fail_pages = False
        self.fail_versions = False
        self.delete_error = None
        self.failed_ids = {}

    def has_access(self):
        return self.access

    def get_flow_definitions(self, offset=0, search_filter=None):
        self.page_calls.append(offset)
        if self.fail_pages:
            raise QueryError("Flow definition query failed", [{"message": "Server unavailable"}])
        page = self.flows[offset:offset + self.page_size]
        return FlowPage(
            flows=tuple(page),
            has_more=offset + len(page) < len(self.flows),
            total_loaded=offset + len(page),
        )

    def get_flow_versions(self, flow_definition_id, active_version_id=None):
        self.version_calls.append(flow_definition_id)
        if self.fail_versions:
            raise QueryError("Flow version query failed")
        return self.versions.get(flow_definition_id) or make_versions(flow_definition_id)

    def delete_flow_versions(self, flow_version_ids, session_id):
        self.delete_calls.append((list(flow_version_ids), session_id))
        if self.delete_error is not None:
            raise self.delete_error
        return DeleteResponse(tuple(
            DeletionResult(i, i not in self.failed_ids, self.failed_ids.get(i))
            for i in flow_version_ids
        ))

    def flow_builder_url(self, version_id):
        return f"{self.instance_url}/builder_platform_interaction/flowBuilder.app?flowId={version_id}"

    def flow_record_url(self, flow_definition_id):
        return f"{self.instance_url}/lightning/setup/Flows/page?address=%2F{flow_definition_id}"


@pytest.fixture
def service():
    return FakeFlowService()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def manager(service, notifications):
    mgr = FlowVersionManager(service, "SESSION_TOKEN", on_notify=notifications.append)
    mgr.start()
    return mgr


@pytest.fixture
def transport_error():
    return DeleteRequestError("Bulk delete failed", [{"message": "Session expired or invalid"}])
