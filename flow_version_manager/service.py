"""
Salesforce REST/Tooling API client for Flow definitions and versions.

Reads go through the authenticated ``requests.Session``; the delete call takes
the session credential explicitly and sends it unmodified.
"""

import urllib.parse
from typing import Dict, List, Optional

import requests

from flow_version_manager.errors import DeleteRequestError, QueryError, response_detail
from flow_version_manager.models import DeleteResponse, DeletionResult, FlowDefinition, FlowPage, FlowVersion

DEFAULT_API_VERSION = "v60.0"
DEFAULT_PAGE_SIZE = 50
# Salesforce Composite API limit is 25 operations per request
COMPOSITE_BATCH_SIZE = 25


class SalesforceFlowService:
    def __init__(self, instance_url: str, access_token: str, api_version: str = DEFAULT_API_VERSION,
                 page_size: int = DEFAULT_PAGE_SIZE, batch_size: int = COMPOSITE_BATCH_SIZE,
                 access_permission: str = "PermissionsModifyAllData", session_log=None,
                 session: Optional[requests.Session] = None):
        self.instance_url = instance_url.rstrip('/')
        self.api_version = api_version
        self.page_size = page_size
        self.batch_size = min(batch_size, COMPOSITE_BATCH_SIZE)
        self.access_permission = access_permission
        self.session_log = session_log
        self.http = session or requests.Session()
        self.http.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json'
        })

    def log_message(self, message: str):
        if self.session_log is not None:
            self.session_log.log_message(message)

    # ---------- query helpers ----------

    def _query(self, soql: str, tooling: bool = False, what: str = "Query") -> List[Dict]:
        path = "tooling/query" if tooling else "query"
        query_url = f"{self.instance_url}/services/data/{self.api_version}/{path}"
        try:
            response = self.http.get(query_url, params={'q': soql})
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            detail = response_detail(e)
            self.log_message(f"{what} failed: {detail or e}")
            raise QueryError(f"{what} failed", detail) from e
        return response.json().get('records', [])

    @staticmethod
    def _quote(value: str) -> str:
        return "'" + value.replace('\\', '\\\\').replace("'", "\\'") + "'"

    # ---------- access ----------

    def has_access(self) -> bool:
        """Check the running user holds the permission required to delete Flow versions"""
        soql = f"SELECT {self.access_permission} FROM UserPermissionAccess LIMIT 1"
        records = self._query(soql, what="Access check")
        allowed = bool(records and records[0].get(self.access_permission))
        self.log_message(f"Access check ({self.access_permission}): {'granted' if allowed else 'denied'}")
        return allowed

    def check_if_production(self) -> bool:
        """Check if the current instance is production by querying Organization.IsSandbox"""
        try:
            records = self._query("SELECT IsSandbox, Name FROM Organization LIMIT 1", what="Organization query")
        except QueryError:
            # Assume production when the org type is unknown
            return True
        org_info = records[0] if records else {}
        is_sandbox = org_info.get('IsSandbox', False)
        self.log_message(f"{'Sandbox' if is_sandbox else 'PRODUCTION'} instance detected: {org_info.get('Name', 'Unknown')}")
        return not is_sandbox

    # ---------- listing ----------

    def get_flow_definitions(self, offset: int = 0, search_filter: Optional[str] = None) -> FlowPage:
        """
        Fetch one page of Flow definitions ordered by API name.

        One extra row is requested to learn whether another page exists.
        ``search_filter`` is accepted for interface compatibility but not
        applied; filtering happens over the loaded pages.
        """
        soql = (
            "SELECT DurableId, ApiName, Label, ProcessType, ActiveVersionId, IsActive "
            "FROM FlowDefinitionView ORDER BY ApiName "
            f"LIMIT {self.page_size + 1} OFFSET {int(offset)}"
        )
        self.log_message(f"Loading Flow definitions at offset {offset}")
        records = self._query(soql, what="Flow definition query")

        has_more = len(records) > self.page_size
        records = records[:self.page_size]
        flows = tuple(
            FlowDefinition(
                id=record['DurableId'],
                developer_name=record.get('ApiName') or '',
                label=record.get('Label'),
                process_type=record.get('ProcessType'),
                active_version_id=record.get('ActiveVersionId'),
                is_active=bool(record.get('IsActive', record.get('ActiveVersionId'))),
            )
            for record in records
        )
        return FlowPage(flows=flows, has_more=has_more, total_loaded=int(offset) + len(flows))

    def get_flow_versions(self, flow_definition_id: str, active_version_id: Optional[str] = None) -> List[FlowVersion]:
        """Fetch every version of one Flow definition, newest first"""
        soql = (
            "SELECT Id, VersionNumber, Status, ApiVersion, LastModifiedDate, ProcessType "
            f"FROM Flow WHERE DefinitionId = {self._quote(flow_definition_id)} "
            "ORDER BY VersionNumber DESC"
        )
        records = self._query(soql, tooling=True, what="Flow version query")
        self.log_message(f"Loaded {len(records)} versions for {flow_definition_id}")

        versions = []
        for record in records:
            api_version = record.get('ApiVersion')
            versions.append(FlowVersion(
                id=record['Id'],
                flow_id=flow_definition_id,
                version_number=record.get('VersionNumber'),
                is_active=record.get('Status') == 'Active' or (
                    active_version_id is not None and record['Id'] == active_version_id),
                api_version=str(api_version) if api_version is not None else None,
                last_modified_date=record.get('LastModifiedDate'),
                process_type=record.get('ProcessType'),
            ))
        return versions

    # ---------- delete ----------

    def delete_flow_versions(self, flow_version_ids: List[str], session_id: str) -> DeleteResponse:
        """
        Delete Flow versions through the Tooling composite API.

        Ids are sent in batches of up to 25 with ``allOrNone`` off, so each
        item succeeds or fails on its own. A transport or auth failure raises
        ``DeleteRequestError``; if it hits a later batch, the results already
        collected are attached as the error detail.
        """
        composite_url = f"{self.instance_url}/services/data/{self.api_version}/tooling/composite"
        headers = {
            'Authorization': f'Bearer {session_id}',
            'Content-Type': 'application/json'
        }
        total_batches = (len(flow_version_ids) + self.batch_size - 1) // self.batch_size
        self.log_message(f"Starting bulk delete of {len(flow_version_ids)} Flow versions in {total_batches} batches")

        results: List[DeletionResult] = []
        for batch_num in range(total_batches):
            batch_ids = flow_version_ids[batch_num * self.batch_size:(batch_num + 1) * self.batch_size]
            references = {f"batch{batch_num + 1}_del{i + 1}": flow_id for i, flow_id in enumerate(batch_ids)}
            composite_request = {
                "allOrNone": False,
                "compositeRequest": [
                    {
                        "method": "DELETE",
                        "url": f"/services/data/{self.api_version}/tooling/sobjects/Flow/{flow_id}",
                        "referenceId": ref_id,
                    }
                    for ref_id, flow_id in references.items()
                ],
            }

            try:
                response = self.http.post(composite_url, json=composite_request, headers=headers)
                response.raise_for_status()
                payload = response.json()
                if not isinstance(payload, dict):
                    raise ValueError(f"Unexpected composite response: {payload!r}")
            except (requests.exceptions.RequestException, ValueError) as e:
                detail = response_detail(e) if isinstance(e, requests.exceptions.RequestException) else str(e)
                self.log_message(f"Bulk delete failed on batch {batch_num + 1}: {detail or e}")
                if results:
                    raise DeleteRequestError("Bulk delete stopped part way", DeleteResponse(tuple(results))) from e
                raise DeleteRequestError("Bulk delete failed", detail) from e

            results.extend(self._parse_composite(payload, references))

        outcome = DeleteResponse(tuple(results))
        self.log_message(f"Delete completed: {outcome.success_count} successful, {outcome.failure_count} failed")
        return outcome

    @staticmethod
    def _parse_composite(payload: Dict, references: Dict[str, str]) -> List[DeletionResult]:
        results = []
        answered = set()
        for sub_response in payload.get('compositeResponse', []):
            ref_id = sub_response.get('referenceId')
            flow_id = references.get(ref_id, ref_id)
            answered.add(ref_id)
            status_code = sub_response.get('httpStatusCode', 0)
            if status_code == 204:
                results.append(DeletionResult(flow_id, True))
                continue
            body = sub_response.get('body') or []
            if isinstance(body, list) and body and isinstance(body[0], dict):
                message = body[0].get('message') or body[0].get('errorCode')
            else:
                message = str(body) if body else None
            results.append(DeletionResult(flow_id, False, message or f"HTTP {status_code}"))

        for ref_id, flow_id in references.items():
            if ref_id not in answered:
                results.append(DeletionResult(flow_id, False, "No response for this item"))
        return results

    # ---------- links ----------

    def flow_builder_url(self, version_id: str) -> str:
        return f"{self.instance_url}/builder_platform_interaction/flowBuilder.app?flowId={version_id}"

    def flow_record_url(self, flow_definition_id: str) -> str:
        address = urllib.parse.quote(f"/{flow_definition_id}", safe='')
        return f"{self.instance_url}/lightning/setup/Flows/page?address={address}"
