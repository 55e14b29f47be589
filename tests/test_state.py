from dataclasses import replace

import pytest

from flow_version_manager import state as st
from flow_version_manager.models import FlowPage

from conftest import make_flow, make_versions


def loaded_state(*flows):
    return st.page_loaded(st.ManagerState(), FlowPage(tuple(flows), False, len(flows)))


def with_versions(state, flow, active_count=1, inactive_count=3):
    return st.versions_loaded(state, flow.id, make_versions(flow.id, active_count, inactive_count))


@pytest.fixture
def flows():
    return [
        make_flow(1, "RecordTriggeredFlow", active=True, label="Account Sync"),
        make_flow(2, "Flow", active=False, label="Lead Intake Screen"),
        make_flow(3, "RecordTriggeredFlow", active=False, label="Case Router"),
        make_flow(4, "AutoLaunchedFlow", active=True, label="Nightly account cleanup"),
    ]


# ---------- filters ----------

def test_search_matches_name_or_label_case_insensitive(flows):
    state = st.set_search_term(loaded_state(*flows), "ACCOUNT")
    assert [f.id for f in st.filtered_flows(state)] == [flows[0].id, flows[3].id]

    state = st.set_search_term(state, "flow_002")
    assert [f.id for f in st.filtered_flows(state)] == [flows[1].id]


@pytest.mark.parametrize("term,process_type,status", [
    ("", "", ""),
    ("flow", "", ""),
    ("", "RecordTriggeredFlow", ""),
    ("", "", "Active"),
    ("", "", "Inactive"),
    ("case", "RecordTriggeredFlow", "Inactive"),
    ("nothing-matches", "", ""),
])
def test_filtered_flows_is_ordered_subset(flows, term, process_type, status):
    state = loaded_state(*flows)
    state = st.set_search_term(state, term)
    state = st.set_filter_type(state, process_type)
    state = st.set_filter_status(state, status)

    result = st.filtered_flows(state)
    positions = [flows.index(f) for f in result]
    assert positions == sorted(positions)
    assert all(f in flows for f in result)


def test_type_and_status_filters_combine(flows):
    state = st.set_filter_type(loaded_state(*flows), "RecordTriggeredFlow")
    state = st.set_filter_status(state, "Inactive")
    assert [f.id for f in st.filtered_flows(state)] == [flows[2].id]


def test_unknown_status_filter_rejected(flows):
    with pytest.raises(ValueError):
        st.set_filter_status(loaded_state(*flows), "Obsolete")


def test_no_results_distinguished_from_loading():
    initial = st.ManagerState()
    assert initial.is_loading
    assert not st.no_results(initial)

    empty = st.set_search_term(st.page_loaded(initial, FlowPage((), False, 0)), "x")
    assert st.no_results(empty)


def test_process_type_options_use_friendly_labels(flows):
    options = st.process_type_options(loaded_state(*flows))
    assert options == [
        {'label': 'All Types', 'value': ''},
        {'label': 'Record-Triggered', 'value': 'RecordTriggeredFlow'},
        {'label': 'Screen Flow', 'value': 'Flow'},
        {'label': 'Autolaunched', 'value': 'AutoLaunchedFlow'},
    ]


def test_total_versions_label(flows):
    state = loaded_state(*flows[:2])
    assert st.total_versions_label(state) == '—'

    state = with_versions(state, flows[0])
    assert st.total_versions_label(state) == '4+ (expand flows to see all)'

    state = with_versions(state, flows[1], active_count=0, inactive_count=2)
    assert st.total_versions_label(state) == '6'


# ---------- pagination ----------

def test_page_loaded_replaces_then_appends(flows):
    state = st.page_loaded(st.ManagerState(), FlowPage(tuple(flows[:2]), True, 2))
    assert state.has_more_flows and state.current_offset == 2

    state = st.page_loaded(st.begin_load(state, append=True), FlowPage(tuple(flows[2:]), False, 4), append=True)
    assert [f.id for f in state.flows] == [f.id for f in flows]
    assert not state.has_more_flows

    state = st.page_loaded(st.begin_load(state), FlowPage(tuple(flows[:1]), True, 1))
    assert [f.id for f in state.flows] == [flows[0].id]


def test_page_failed_keeps_flows(flows):
    state = st.begin_load(loaded_state(*flows), append=True)
    state = st.page_failed(state)
    assert len(state.flows) == 4
    assert not state.is_loading_more


# ---------- versions ----------

def test_version_label_after_load(flows):
    state = loaded_state(flows[0])
    assert state.flows[0].version_label == "Click to load"
    assert state.flows[0].has_no_inactive

    state = with_versions(state, flows[0])
    flow = state.flows[0]
    assert flow.version_label == "4 versions"
    assert flow.version_count == 4
    assert not flow.has_no_inactive


def test_expand_requests_fetch_only_once(flows):
    state = loaded_state(*flows)
    state, needs_fetch = st.toggle_expansion(state, flows[0].id)
    assert needs_fetch
    assert st.find_flow(state, flows[0].id).is_loading_versions

    # second expand click before the response arrives (collapse then expand)
    state, needs_fetch = st.toggle_expansion(state, flows[0].id)
    state, needs_fetch = st.toggle_expansion(state, flows[0].id)
    assert not needs_fetch

    state = with_versions(state, flows[0])
    state, _ = st.toggle_expansion(state, flows[0].id)
    state, needs_fetch = st.toggle_expansion(state, flows[0].id)
    assert not needs_fetch


def test_toggle_unknown_flow_is_ignored(flows):
    state = loaded_state(*flows)
    new_state, needs_fetch = st.toggle_expansion(state, "300missing")
    assert new_state is state
    assert not needs_fetch


def test_version_responses_commute(flows):
    state = loaded_state(*flows)
    state, _ = st.toggle_expansion(state, flows[0].id)
    state, _ = st.toggle_expansion(state, flows[1].id)

    a = with_versions(with_versions(state, flows[0]), flows[1], 0, 2)
    b = with_versions(with_versions(state, flows[1], 0, 2), flows[0])
    assert a == b


def test_versions_failed_allows_retry(flows):
    state, _ = st.toggle_expansion(loaded_state(*flows), flows[0].id)
    state = st.versions_failed(state, flows[0].id)
    flow = st.find_flow(state, flows[0].id)
    assert not flow.is_loading_versions and not flow.versions_loaded

    state, _ = st.toggle_expansion(state, flows[0].id)
    _, needs_fetch = st.toggle_expansion(state, flows[0].id)
    assert needs_fetch


# ---------- selection ----------

def test_toggle_version_round_trip(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    before = state.selected_version_ids

    state = st.toggle_version(state, f"{flows[0].id}_v2", True)
    assert f"{flows[0].id}_v2" in state.selected_version_ids
    state = st.toggle_version(state, f"{flows[0].id}_v2", False)
    assert state.selected_version_ids == before


def test_toggle_version_refuses_active(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    active_id = f"{flows[0].id}_v4"
    assert st.toggle_version(state, active_id, True).selected_version_ids == frozenset()


def test_all_inactive_flag_tracks_individual_toggles(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    for n in (1, 2, 3):
        state = st.toggle_version(state, f"{flows[0].id}_v{n}", True)
    assert st.find_flow(state, flows[0].id).all_inactive_selected

    state = st.toggle_version(state, f"{flows[0].id}_v1", False)
    flow = st.find_flow(state, flows[0].id)
    assert not flow.all_inactive_selected
    assert [v.is_selected for v in flow.versions] == [False, True, True, False]


def test_select_all_inactive_never_adds_active(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    state = st.toggle_all_inactive_for_flow(state, flows[0].id, True)
    assert state.selected_version_ids == {f"{flows[0].id}_v{n}" for n in (1, 2, 3)}
    assert st.find_flow(state, flows[0].id).all_inactive_selected

    state = st.toggle_all_inactive_for_flow(state, flows[0].id, False)
    assert state.selected_version_ids == frozenset()


def test_select_all_inactive_with_stale_active_flag(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    flow = st.find_flow(state, flows[0].id)
    stale = tuple(replace(v, is_active=True) if v.version_number == 2 else v for v in flow.versions)
    state = st.versions_loaded(state, flow.id, stale)

    state = st.toggle_all_inactive_for_flow(state, flow.id, True)
    assert f"{flow.id}_v2" not in state.selected_version_ids
    assert f"{flow.id}_v4" not in state.selected_version_ids


def test_select_all_needs_loaded_versions(flows):
    state = loaded_state(*flows)
    assert st.toggle_all_inactive_for_flow(state, flows[0].id, True) is state


def test_selection_survives_collapse_and_reexpand(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    state, _ = st.toggle_expansion(state, flows[0].id)
    state = st.toggle_version(state, f"{flows[0].id}_v1", True)
    state, _ = st.toggle_expansion(state, flows[0].id)
    assert f"{flows[0].id}_v1" in state.selected_version_ids

    # reload of the same flow's versions keeps the checkbox ticked
    state = with_versions(state, flows[0])
    version = st.find_version(state, f"{flows[0].id}_v1")
    assert version.is_selected


def test_deletable_ids_drops_active(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    ids = [f"{flows[0].id}_v4", f"{flows[0].id}_v1", "301unloaded"]
    assert st.deletable_ids(state, ids) == [f"{flows[0].id}_v1", "301unloaded"]


def test_delete_button_label(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    assert st.delete_disabled(state)
    state = st.toggle_all_inactive_for_flow(state, flows[0].id, True)
    assert st.delete_button_label(state) == "Delete (3)"
    assert st.load_more_label(state) == "Load More (4 loaded)"


def test_toggle_version_ignores_unloaded_id(flows):
    state = with_versions(loaded_state(*flows), flows[0])
    assert st.toggle_version(state, "301unloaded", True) is state


def test_full_reload_keeps_offset_until_page_arrives(flows):
    state = st.page_loaded(st.ManagerState(), FlowPage(tuple(flows[:2]), True, 2))
    state = st.page_failed(st.begin_load(state))
    assert state.current_offset == 2
    assert state.has_more_flows
