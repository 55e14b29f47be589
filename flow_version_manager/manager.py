"""
UI-agnostic controller for the Flow Version Manager.

Owns the current ``ManagerState`` snapshot, the service client and the session
credential. Views read ``state`` and the derived helpers, and request every
change (expand, select, delete) through this object; they never touch the
selection directly.

Notifications are delivered through ``on_notify`` (``Callable[[Notification], None]``);
by default they are printed to the console.
"""

from collections import namedtuple
from typing import Callable, Iterable, List, Optional

from flow_version_manager import state as st
from flow_version_manager.errors import DeleteRequestError, FlowManagerError, reduce_error
from flow_version_manager.models import DeleteResponse, FlowDefinition, FlowVersion

Notification = namedtuple('Notification', ['variant', 'title', 'message'])

ICONS = {'success': '✅', 'warning': '⚠️ ', 'error': '❌', 'info': 'ℹ️ '}


def print_notification(notification: Notification):
    print(f"{ICONS.get(notification.variant, '')} {notification.message}")


class FlowVersionManager:
    def __init__(self, service, session_id: str, session_log=None,
                 on_notify: Optional[Callable[[Notification], None]] = print_notification):
        self.service = service
        self.session_id = session_id
        self.session_log = session_log
        self.on_notify = on_notify
        self.state = st.ManagerState()

    # ---------- notifications ----------
    def _notify(self, variant: str, title: str, message: str):
        if self.on_notify:
            self.on_notify(Notification(variant, title, message))

    def show_success(self, message: str):
        self._notify('success', 'Success', message)

    def show_warning(self, message: str):
        self._notify('warning', 'Warning', message)

    def show_error(self, message: str):
        self._notify('error', 'Error', message)
        self.log_message(f"Error: {message}")

    def log_message(self, message: str):
        if self.session_log is not None:
            self.session_log.log_message(message)

    # ---------- lifecycle ----------
    def start(self) -> bool:
        """Check access and load the first page. Returns False if access is denied"""
        try:
            allowed = self.service.has_access()
        except FlowManagerError as e:
            self.show_error('Error checking access: ' + reduce_error(e))
            allowed = False
        self.state = st.access_checked(self.state, allowed)
        if not allowed:
            return False
        self.load_flows()
        return True

    # ---------- listing ----------
    def load_flows(self, append: bool = False):
        if self.state.access_denied:
            return
        self.state = st.begin_load(self.state, append)
        try:
            offset = self.state.current_offset if append else 0
            page = self.service.get_flow_definitions(offset, None)
        except FlowManagerError as e:
            self.show_error('Error loading flows: ' + reduce_error(e))
            self.state = st.page_failed(self.state)
            return
        self.state = st.page_loaded(self.state, page, append)

    def load_more(self):
        if not self.state.has_more_flows or self.state.is_loading_more:
            return
        self.load_flows(append=True)

    # ---------- filters ----------
    def set_search_term(self, term: Optional[str]):
        self.state = st.set_search_term(self.state, term)

    def set_filter_type(self, process_type: Optional[str]):
        self.state = st.set_filter_type(self.state, process_type)

    def set_filter_status(self, status: Optional[str]):
        self.state = st.set_filter_status(self.state, status)

    @property
    def filtered_flows(self) -> List[FlowDefinition]:
        return st.filtered_flows(self.state)

    @property
    def no_results(self) -> bool:
        return st.no_results(self.state)

    @property
    def selected_count(self) -> int:
        return st.selected_count(self.state)

    @property
    def delete_button_label(self) -> str:
        return st.delete_button_label(self.state)

    @property
    def delete_disabled(self) -> bool:
        return st.delete_disabled(self.state)

    @property
    def load_more_label(self) -> str:
        return st.load_more_label(self.state)

    @property
    def total_versions_label(self) -> str:
        return st.total_versions_label(self.state)

    @property
    def process_type_options(self):
        return st.process_type_options(self.state)

    # ---------- versions ----------
    def toggle_flow(self, flow_id: str):
        """Expand or collapse a flow, fetching its versions on first expand"""
        if self.state.access_denied:
            return
        self.state, needs_fetch = st.toggle_expansion(self.state, flow_id)
        if needs_fetch:
            self.load_versions(flow_id)

    def load_versions(self, flow_id: str) -> Optional[List[FlowVersion]]:
        flow = st.find_flow(self.state, flow_id)
        if flow is None:
            return None
        try:
            versions = self.service.get_flow_versions(flow_id, flow.active_version_id)
        except FlowManagerError as e:
            self.show_error('Error loading versions: ' + reduce_error(e))
            self.state = st.versions_failed(self.state, flow_id)
            return None
        self.state = st.versions_loaded(self.state, flow_id, versions)
        return list(st.find_flow(self.state, flow_id).versions)

    # ---------- selection ----------
    def toggle_version(self, version_id: str, selected: bool):
        self.state = st.toggle_version(self.state, version_id, selected)

    def toggle_all_inactive_for_flow(self, flow_id: str, selected: bool):
        self.state = st.toggle_all_inactive_for_flow(self.state, flow_id, selected)

    # ---------- delete ----------
    def submit(self, selected_ids: Optional[Iterable[str]] = None) -> Optional[DeleteResponse]:
        """
        Delete the selected versions in one request and reconcile the results.

        Returns the ``DeleteResponse`` or ``None`` when the request failed as a
        whole, in which case the selection is kept so the user can retry.
        """
        ids = list(selected_ids) if selected_ids is not None else sorted(self.state.selected_version_ids)
        if not ids:
            raise ValueError("No flow versions selected for deletion")

        ids = st.deletable_ids(self.state, ids)
        if not ids:
            self.show_warning("Only active versions were selected. Nothing to delete.")
            return DeleteResponse()

        if self.session_log is not None:
            known = [v for v in (st.find_version(self.state, i) for i in ids) if v is not None]
            self.session_log.save_deletion_list(known, self.state.flows, getattr(self.service, 'instance_url', None))
        self.log_message(f"User confirmed deletion of {len(ids)} Flow versions")

        self.state = st.set_deleting(self.state, True)
        try:
            response = self.service.delete_flow_versions(ids, self.session_id)
        except DeleteRequestError as e:
            if isinstance(e.detail, DeleteResponse):
                # Some batches went through before the failure
                self.show_error('Error deleting flow versions: ' + e.message)
                self._reconcile(e.detail)
                return e.detail
            self.show_error('Error deleting flow versions: ' + reduce_error(e))
            return None
        finally:
            self.state = st.set_deleting(self.state, False)

        self._reconcile(response)
        return response

    def _reconcile(self, response: DeleteResponse):
        if response.failure_count == 0:
            self.show_success(f"Successfully deleted {response.success_count} flow version(s).")
        else:
            self.show_warning(
                f"Deleted {response.success_count} version(s). "
                f"Failed to delete {response.failure_count} version(s)."
            )
            for failure in response.failures:
                self.log_message(f"Failed to delete {failure.flow_version_id}: {failure.error_message}")

        self.state = st.clear_selection(self.state)
        self.load_flows()
