#!/usr/bin/env python3
"""
Interactive console for the Flow Version Manager.

Renders the manager state as a numbered list of flows (numbers refer to the
filtered list) and turns typed commands into controller calls.
"""

import sys
import webbrowser
from typing import Dict, Tuple

from flow_version_manager.auth import authenticate
from flow_version_manager.config import (DEFAULT_CALLBACK_PORT, DEFAULTS, load_config_file,
                                         normalize_instance_url, validate_config, validate_port)
from flow_version_manager.errors import ConfigError, FlowManagerError, reduce_error
from flow_version_manager.manager import FlowVersionManager
from flow_version_manager.service import SalesforceFlowService
from flow_version_manager.session_log import SessionLog
from flow_version_manager.state import STATUS_OPTIONS

HELP_TEXT = """
Commands:
  list                     show the flow list
  more                     load the next page of flows
  search <text>            filter by name or label (no text clears)
  type <ProcessType|->     filter by process type
  status <Active|Inactive|->  filter by status
  expand <n>               expand or collapse flow n
  select <n>.<m>           select version m of flow n
  unselect <n>.<m>         unselect version m of flow n
  all <n> / none <n>       select or unselect every inactive version of flow n
  delete                   delete the selected versions
  open <n>[.<m>]           open the flow (or version) in the browser
  reload                   reload the list from the first page
  help                     show this help
  quit                     exit
"""


def render_flows(manager: FlowVersionManager) -> str:
    state = manager.state
    if state.access_denied:
        return "🚫 Access denied. You need permission to manage Flows to use this tool."
    if state.is_loading:
        return "⏳ Loading flows..."

    flows = manager.filtered_flows
    lines = [
        f"📊 Flows: {len(flows)} | Versions: {manager.total_versions_label} | Selected: {manager.selected_count}",
    ]
    if state.search_term or state.filter_type or state.filter_status:
        lines.append(f"🔍 search='{state.search_term}' type={state.filter_type or 'All'} "
                     f"status={state.filter_status or 'All'}")
    if manager.no_results:
        lines.append("   No flows match the current filters.")

    for n, flow in enumerate(flows, 1):
        marker = '-' if flow.is_expanded else '+'
        status = 'Active' if flow.is_active else 'Inactive'
        label = f" ({flow.label})" if flow.label and flow.label != flow.developer_name else ''
        lines.append(f"{n:3d}. [{marker}] {flow.developer_name}{label}  {flow.process_type_label or ''}  "
                     f"{status}  {flow.version_label}")
        if not flow.is_expanded:
            continue
        if flow.is_loading_versions:
            lines.append("        ⏳ Loading versions...")
            continue
        if flow.versions_loaded and not flow.has_no_inactive:
            check = 'x' if flow.all_inactive_selected else ' '
            lines.append(f"        [{check}] all inactive versions")
        for m, version in enumerate(flow.versions, 1):
            if version.is_active:
                box = '   '
            else:
                box = '[x]' if version.is_selected else '[ ]'
            lines.append(f"        {box} {n}.{m}  v{version.version_number}  "
                         f"{'Active  ' if version.is_active else 'Inactive'}  API {version.api_version or '-'}  "
                         f"{version.last_modified_display}")

    if state.has_more_flows:
        lines.append(f"   ➕ {manager.load_more_label} - type 'more'")
    lines.append(f"   🗑️  {manager.delete_button_label}")
    return "\n".join(lines)


class FlowConsole:
    def __init__(self, manager: FlowVersionManager, input_func=input):
        self.manager = manager
        self.input = input_func

    # ---------- row lookup ----------
    def _flow_at(self, ref: str):
        flows = self.manager.filtered_flows
        index = int(ref) - 1
        if index < 0 or index >= len(flows):
            raise IndexError(f"No flow number {ref}")
        return flows[index]

    def _version_at(self, ref: str):
        flow_ref, _, version_ref = ref.partition('.')
        flow = self._flow_at(flow_ref)
        index = int(version_ref) - 1
        if index < 0 or index >= len(flow.versions):
            raise IndexError(f"No version {ref} (expand flow {flow_ref} first)")
        return flow, flow.versions[index]

    # ---------- commands ----------
    def confirm_delete(self) -> bool:
        manager = self.manager
        if manager.delete_disabled:
            print("❌ Nothing selected.")
            return False

        print("\n⚠️  CONFIRMATION REQUIRED")
        print(f"📊 About to delete {manager.selected_count} Flow versions. This action cannot be undone!")
        confirm = self.input(f"Type 'DELETE' to confirm deleting {manager.selected_count} Flow versions: ").strip()
        if confirm != 'DELETE':
            print("❌ Operation cancelled by user.")
            manager.log_message("Delete cancelled by user")
            return False

        manager.submit()
        return True

    def handle(self, line: str) -> bool:
        """Run one command. Returns False when the user quits"""
        command, _, arg = line.strip().partition(' ')
        command = command.lower()
        arg = arg.strip()
        manager = self.manager

        if command in ('quit', 'exit', 'q'):
            return False
        if command in ('', 'list', 'ls'):
            print(render_flows(manager))
        elif command == 'help':
            print(HELP_TEXT)
        elif command == 'more':
            if not manager.state.has_more_flows:
                print("✨ All flows are loaded.")
            else:
                manager.load_more()
                print(render_flows(manager))
        elif command == 'reload':
            manager.load_flows()
            print(render_flows(manager))
        elif command == 'search':
            manager.set_search_term(arg)
            print(render_flows(manager))
        elif command == 'type':
            manager.set_filter_type('' if arg in ('', '-') else arg)
            if arg not in ('', '-') and arg not in {o['value'] for o in manager.process_type_options}:
                print(f"⚠️  No loaded flow has type {arg}. Known types: "
                      + ", ".join(o['value'] for o in manager.process_type_options if o['value']))
            print(render_flows(manager))
        elif command == 'status':
            value = '' if arg in ('', '-') else arg.capitalize()
            if value not in {o['value'] for o in STATUS_OPTIONS}:
                print("❌ Status must be Active, Inactive or -")
            else:
                manager.set_filter_status(value)
                print(render_flows(manager))
        elif command == 'expand':
            manager.toggle_flow(self._flow_at(arg).id)
            print(render_flows(manager))
        elif command in ('select', 'unselect'):
            flow, version = self._version_at(arg)
            if version.is_active:
                print("❌ Active versions cannot be selected.")
            else:
                manager.toggle_version(version.id, command == 'select')
                print(render_flows(manager))
        elif command in ('all', 'none'):
            flow = self._flow_at(arg)
            if not flow.versions_loaded:
                print(f"❌ Expand flow {arg} first.")
            else:
                manager.toggle_all_inactive_for_flow(flow.id, command == 'all')
                print(render_flows(manager))
        elif command == 'delete':
            if self.confirm_delete():
                print(render_flows(manager))
        elif command == 'open':
            if '.' in arg:
                _, version = self._version_at(arg)
                url = manager.service.flow_builder_url(version.id)
            else:
                url = manager.service.flow_record_url(self._flow_at(arg).id)
            print(f"🌐 Opening {url}")
            webbrowser.open(url)
        else:
            print(f"❓ Unknown command: {command}. Type 'help' for the list of commands.")
        return True

    def run(self):
        print(render_flows(self.manager))
        print("Type 'help' for commands.")
        while True:
            try:
                line = self.input("\nflows> ")
            except EOFError:
                break
            try:
                if not self.handle(line):
                    break
            except (ValueError, IndexError) as e:
                print(f"❌ {e}")
            except FlowManagerError as e:
                print(f"❌ {reduce_error(e)}")


# ---------- startup ----------

def get_user_input(argv) -> Dict:
    """Read the config file named on the command line, or prompt for the basics"""
    if len(argv) > 1:
        return load_config_file(argv[1])

    print("=== Salesforce Flow Version Manager ===\n")
    instance = input("Enter your Salesforce instance URL (e.g., mycompany.my.salesforce.com): ").strip()
    if not instance:
        raise ConfigError("An instance URL is required")

    port_input = input(f"Enter callback port (press Enter for default {DEFAULT_CALLBACK_PORT}): ").strip()
    port = DEFAULT_CALLBACK_PORT
    if port_input:
        try:
            port = validate_port(port_input)
            print("⚠️  IMPORTANT: Update your Salesforce Connected App callback URL to:")
            print(f"   http://localhost:{port}/callback")
        except ConfigError as e:
            print(f"⚠️  {e.message}. Using default {DEFAULT_CALLBACK_PORT}.")

    print("\n=== Connected App Configuration ===")
    client_id = input("Client ID (Consumer Key): ").strip()
    client_secret = input("Client Secret (Consumer Secret) [optional]: ").strip()

    config = dict(DEFAULTS)
    config.update({
        'instance': normalize_instance_url(instance),
        'callback_port': port,
        'client_id': client_id,
        'client_secret': client_secret,
    })
    return validate_config(config)


def connect(config: Dict, session_log: SessionLog) -> Tuple[SalesforceFlowService, str]:
    if config.get('access_token'):
        print("🔑 Using access token from configuration")
        access_token = config['access_token']
    else:
        print("\n=== Authentication ===")
        print(f"Starting local callback server on port {config['callback_port']}...")
        access_token = authenticate(config['instance'], config['client_id'], config['client_secret'],
                                    port=config['callback_port'], session_log=session_log)
        print("✅ Authentication successful!")

    service = SalesforceFlowService(
        config['instance'],
        access_token,
        api_version=config['api_version'],
        page_size=config['page_size'],
        batch_size=config['batch_size'],
        access_permission=config['access_permission'],
        session_log=session_log,
    )
    return service, access_token


def confirm_production(service: SalesforceFlowService) -> bool:
    print("\n🔍 Checking instance type...")
    if not service.check_if_production():
        print("🧪 Sandbox instance detected. Safe to proceed.")
        return True
    print("\n⚠️  WARNING: This is a PRODUCTION instance!")
    confirm = input("Are you sure you want to proceed? Type 'YES' to continue: ").strip()
    return confirm == 'YES'


def main(argv=None) -> int:
    argv = sys.argv if argv is None else argv
    try:
        config = get_user_input(argv)
    except ConfigError as e:
        print(f"❌ Configuration error: {e.message}")
        return 1

    session_log = SessionLog(config['log_dir'])
    log_file = session_log.setup_logging(config['instance'])
    print(f"📝 Logging to: {log_file}")

    try:
        service, session_id = connect(config, session_log)
    except FlowManagerError as e:
        print(f"❌ {reduce_error(e)}")
        session_log.log_message("Authentication failed. Exiting.")
        return 1

    if not config['skip_production_check'] and not confirm_production(service):
        print("Operation cancelled.")
        session_log.log_message("Operation cancelled: User declined production confirmation")
        return 0

    manager = FlowVersionManager(service, session_id, session_log=session_log)
    if not manager.start():
        print(render_flows(manager))
        return 1

    FlowConsole(manager).run()
    print(f"👋 Bye. Log file: {log_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
