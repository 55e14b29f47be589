"""
Immutable manager state and the pure transitions between snapshots.

Every function here takes the full current ``ManagerState`` and returns a new
one. A transition only rebuilds the slot of the flow it concerns, so responses
for different flows can be applied in any order without clobbering each other.
"""

from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from flow_version_manager.models import FlowDefinition, FlowPage, FlowVersion
from flow_version_manager.process_types import process_type_label

STATUS_ACTIVE = 'Active'
STATUS_INACTIVE = 'Inactive'

STATUS_OPTIONS = [
    {'label': 'All Statuses', 'value': ''},
    {'label': 'Active', 'value': STATUS_ACTIVE},
    {'label': 'Inactive', 'value': STATUS_INACTIVE},
]


@dataclass(frozen=True)
class ManagerState:
    flows: Tuple[FlowDefinition, ...] = ()
    selected_version_ids: FrozenSet[str] = frozenset()
    search_term: str = ''
    filter_type: str = ''
    filter_status: str = ''
    is_loading: bool = True
    is_loading_more: bool = False
    has_more_flows: bool = False
    current_offset: int = 0
    access_denied: bool = False
    is_deleting: bool = False


# ---------- listing ----------

def begin_load(state: ManagerState, append: bool = False) -> ManagerState:
    if append:
        return replace(state, is_loading_more=True)
    # current_offset only moves when a page arrives
    return replace(state, is_loading=True)


def page_loaded(state: ManagerState, page: FlowPage, append: bool = False) -> ManagerState:
    """Apply a listing page; offset 0 replaces the list, load more appends"""
    flows = state.flows + tuple(page.flows) if append else tuple(page.flows)
    return replace(
        state,
        flows=flows,
        has_more_flows=page.has_more,
        current_offset=page.total_loaded,
        is_loading=False,
        is_loading_more=False,
    )


def page_failed(state: ManagerState) -> ManagerState:
    # Previously loaded flows stay on screen
    return replace(state, is_loading=False, is_loading_more=False)


def access_checked(state: ManagerState, has_access: bool) -> ManagerState:
    if has_access:
        return state
    return replace(state, access_denied=True, is_loading=False)


# ---------- filters ----------

def set_search_term(state: ManagerState, term: Optional[str]) -> ManagerState:
    return replace(state, search_term=term or '')


def set_filter_type(state: ManagerState, process_type: Optional[str]) -> ManagerState:
    return replace(state, filter_type=process_type or '')


def set_filter_status(state: ManagerState, status: Optional[str]) -> ManagerState:
    if status and status not in (STATUS_ACTIVE, STATUS_INACTIVE):
        raise ValueError(f"Unknown status filter: {status}")
    return replace(state, filter_status=status or '')


def filtered_flows(state: ManagerState) -> List[FlowDefinition]:
    result = list(state.flows)

    if state.search_term:
        term = state.search_term.lower()
        result = [
            flow for flow in result
            if term in (flow.developer_name or '').lower()
            or (flow.label and term in flow.label.lower())
        ]

    if state.filter_type:
        result = [flow for flow in result if flow.process_type == state.filter_type]

    if state.filter_status:
        show_active = state.filter_status == STATUS_ACTIVE
        result = [flow for flow in result if flow.is_active == show_active]

    return result


def no_results(state: ManagerState) -> bool:
    """Empty filtered list once loading is over (not the initial spinner)"""
    return not state.is_loading and not filtered_flows(state)


def process_type_options(state: ManagerState) -> List[Dict[str, str]]:
    options = [{'label': 'All Types', 'value': ''}]
    seen = set()
    for flow in state.flows:
        if flow.process_type and flow.process_type not in seen:
            seen.add(flow.process_type)
            options.append({'label': process_type_label(flow.process_type), 'value': flow.process_type})
    return options


def total_versions_label(state: ManagerState) -> str:
    visible = filtered_flows(state)
    loaded = [flow for flow in visible if flow.versions_loaded]
    if not loaded:
        return '—'
    count = sum(flow.version_count or 0 for flow in loaded)
    if len(loaded) < len(visible):
        return f"{count}+ (expand flows to see all)"
    return str(count)


def selected_count(state: ManagerState) -> int:
    return len(state.selected_version_ids)


def delete_button_label(state: ManagerState) -> str:
    return f"Delete ({selected_count(state)})"


def delete_disabled(state: ManagerState) -> bool:
    return selected_count(state) == 0


def load_more_label(state: ManagerState) -> str:
    return f"Load More ({len(state.flows)} loaded)"


def find_flow(state: ManagerState, flow_id: str) -> Optional[FlowDefinition]:
    for flow in state.flows:
        if flow.id == flow_id:
            return flow
    return None


def find_version(state: ManagerState, version_id: str) -> Optional[FlowVersion]:
    for flow in state.flows:
        for version in flow.versions:
            if version.id == version_id:
                return version
    return None


# ---------- versions ----------

def _update_flow(state: ManagerState, flow_id: str, **changes) -> ManagerState:
    return replace(
        state,
        flows=tuple(replace(f, **changes) if f.id == flow_id else f for f in state.flows),
    )


def _all_inactive_selected(versions: Iterable[FlowVersion], selected: FrozenSet[str]) -> bool:
    inactive = [v for v in versions if not v.is_active]
    return bool(inactive) and all(v.id in selected for v in inactive)


def toggle_expansion(state: ManagerState, flow_id: str) -> Tuple[ManagerState, bool]:
    """
    Flip a flow's expanded flag.

    Returns the new state and whether the caller should fetch versions. No
    fetch is requested if versions are loaded or a fetch is already in flight.
    """
    flow = find_flow(state, flow_id)
    if flow is None:
        return state, False

    expanding = not flow.is_expanded
    needs_fetch = expanding and not flow.versions_loaded and not flow.is_loading_versions
    new_state = _update_flow(
        state,
        flow_id,
        is_expanded=expanding,
        is_loading_versions=flow.is_loading_versions or needs_fetch,
    )
    return new_state, needs_fetch


def versions_loaded(state: ManagerState, flow_id: str, versions: Iterable[FlowVersion]) -> ManagerState:
    selected = state.selected_version_ids
    loaded = tuple(replace(v, is_selected=v.id in selected and not v.is_active) for v in versions)
    return _update_flow(
        state,
        flow_id,
        versions=loaded,
        versions_loaded=True,
        is_loading_versions=False,
        version_count=len(loaded),
        has_no_inactive=not any(not v.is_active for v in loaded),
        all_inactive_selected=_all_inactive_selected(loaded, selected),
    )


def versions_failed(state: ManagerState, flow_id: str) -> ManagerState:
    # versions_loaded stays False so the next expand retries
    return _update_flow(state, flow_id, is_loading_versions=False)


# ---------- selection ----------

def _with_selection(state: ManagerState, selected: FrozenSet[str]) -> ManagerState:
    """Swap the selection and bring every loaded flow's derived flags in line"""
    flows = []
    for flow in state.flows:
        if not flow.versions_loaded:
            flows.append(flow)
            continue
        versions = tuple(
            replace(v, is_selected=v.id in selected and not v.is_active) for v in flow.versions
        )
        flows.append(replace(
            flow,
            versions=versions,
            all_inactive_selected=_all_inactive_selected(versions, selected),
        ))
    return replace(state, flows=tuple(flows), selected_version_ids=frozenset(selected))


def toggle_version(state: ManagerState, version_id: str, selected: bool) -> ManagerState:
    if selected:
        version = find_version(state, version_id)
        # Only versions loaded and known to be inactive can be selected
        if version is None or version.is_active:
            return state
        return _with_selection(state, state.selected_version_ids | {version_id})
    return _with_selection(state, state.selected_version_ids - {version_id})


def toggle_all_inactive_for_flow(state: ManagerState, flow_id: str, selected: bool) -> ManagerState:
    flow = find_flow(state, flow_id)
    if flow is None or not flow.versions_loaded:
        return state
    ids = {v.id for v in flow.inactive_versions}
    if selected:
        return _with_selection(state, state.selected_version_ids | ids)
    return _with_selection(state, state.selected_version_ids - ids)


def clear_selection(state: ManagerState) -> ManagerState:
    return _with_selection(state, frozenset())


def deletable_ids(state: ManagerState, version_ids: Iterable[str]) -> List[str]:
    """Drop ids whose loaded version is active; unloaded ids pass through"""
    result = []
    for version_id in version_ids:
        version = find_version(state, version_id)
        if version is not None and version.is_active:
            continue
        result.append(version_id)
    return result


def set_deleting(state: ManagerState, deleting: bool) -> ManagerState:
    return replace(state, is_deleting=deleting)
