"""Per-session audit log and deletion list files."""

import json
import os
import re
from datetime import datetime
from typing import Iterable, Optional

from flow_version_manager.models import FlowDefinition, FlowVersion

MASK_PATTERNS = [
    (r'client_id["\']?\s*[:=]\s*["\']?([A-Za-z0-9._]{15,})', 'client_id="***MASKED***"'),
    (r'client_secret["\']?\s*[:=]\s*["\']?([A-Za-z0-9._]{15,})', 'client_secret="***MASKED***"'),
    (r'access_token["\']?\s*[:=]\s*["\']?([A-Za-z0-9!._]{50,})', 'access_token="***MASKED***"'),
    (r'Bearer\s+[A-Za-z0-9!._]{20,}', 'Bearer ***MASKED***'),
    (r'code["\']?\s*[:=]\s*["\']?([A-Za-z0-9%._]{20,})', 'code="***MASKED***"'),
]


def mask_sensitive_data(text: str) -> str:
    """Mask client ids, secrets, tokens and authorization codes"""
    for pattern, replacement in MASK_PATTERNS:
        text = re.sub(pattern, replacement, text)
    return text


class SessionLog:
    def __init__(self, log_dir: str = ".", session_id: Optional[str] = None):
        self.log_dir = log_dir
        self.session_id = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = None

    def setup_logging(self, instance_url: Optional[str] = None) -> str:
        os.makedirs(self.log_dir, exist_ok=True)
        self.log_file = os.path.join(self.log_dir, f"flow_version_manager_{self.session_id}.log")

        with open(self.log_file, 'w') as f:
            f.write("=== Salesforce Flow Version Manager Log ===\n")
            f.write(f"Session ID: {self.session_id}\n")
            f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"Instance: {instance_url}\n")
            f.write("=" * 50 + "\n\n")

        return self.log_file

    def log_message(self, message: str, mask_sensitive: bool = True):
        if not self.log_file:
            return
        if mask_sensitive:
            message = mask_sensitive_data(message)

        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        with open(self.log_file, 'a') as f:
            f.write(f"[{timestamp}] {message}\n")

    def save_deletion_list(self, versions: Iterable[FlowVersion], flows: Iterable[FlowDefinition],
                           instance_url: Optional[str] = None) -> Optional[str]:
        """Write the versions about to be deleted to a JSON file and return its path"""
        versions = list(versions)
        if not versions:
            return None

        names = {flow.id: flow for flow in flows}
        filename = os.path.join(self.log_dir, f"flows_to_delete_{self.session_id}.json")
        save_data = {
            "session_id": self.session_id,
            "timestamp": datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            "instance_url": instance_url,
            "total_flows": len(versions),
            "flows": [],
        }
        for version in versions:
            flow = names.get(version.flow_id)
            save_data["flows"].append({
                "id": version.id,
                "name": flow.developer_name if flow else None,
                "label": flow.label if flow else None,
                "version": version.version_number,
                "status": "Active" if version.is_active else "Inactive",
                "definition_id": version.flow_id,
            })

        with open(filename, 'w') as f:
            json.dump(save_data, f, indent=2)

        self.log_message(f"Deletion list saved to: {filename}")
        return filename
