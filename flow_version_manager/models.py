"""Value objects for Flow definitions, versions and delete results.

All objects are frozen: state transitions build new instances with
``dataclasses.replace`` instead of assigning fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from flow_version_manager.process_types import process_type_label


def format_version_label(version_count: Optional[int]) -> str:
    if version_count is None:
        return "Click to load"
    return f"{version_count} version{'' if version_count == 1 else 's'}"


def format_date(value: Optional[str]) -> str:
    """Render a Salesforce timestamp as e.g. 'Mar 5, 2024'"""
    if not value:
        return ''
    try:
        parsed = datetime.strptime(value[:10], '%Y-%m-%d')
    except ValueError:
        return value
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


@dataclass(frozen=True)
class FlowVersion:
    id: str
    flow_id: str
    version_number: int
    is_active: bool
    api_version: Optional[str] = None
    last_modified_date: Optional[str] = None
    process_type: Optional[str] = None
    is_selected: bool = False

    @property
    def process_type_label(self) -> Optional[str]:
        return process_type_label(self.process_type)

    @property
    def last_modified_display(self) -> str:
        return format_date(self.last_modified_date)


@dataclass(frozen=True)
class FlowDefinition:
    id: str
    developer_name: str
    label: Optional[str] = None
    process_type: Optional[str] = None
    active_version_id: Optional[str] = None
    is_active: bool = False
    version_count: Optional[int] = None
    versions: Tuple[FlowVersion, ...] = ()
    is_expanded: bool = False
    versions_loaded: bool = False
    is_loading_versions: bool = False
    # True until versions load; the header checkbox stays disabled until then
    has_no_inactive: bool = True
    all_inactive_selected: bool = False

    @property
    def version_label(self) -> str:
        return format_version_label(self.version_count)

    @property
    def process_type_label(self) -> Optional[str]:
        return process_type_label(self.process_type)

    @property
    def inactive_versions(self) -> Tuple[FlowVersion, ...]:
        return tuple(v for v in self.versions if not v.is_active)


@dataclass(frozen=True)
class FlowPage:
    """One page of the flow definition listing"""
    flows: Tuple[FlowDefinition, ...]
    has_more: bool
    total_loaded: int


@dataclass(frozen=True)
class DeletionResult:
    flow_version_id: str
    success: bool
    error_message: Optional[str] = None


@dataclass(frozen=True)
class DeleteResponse:
    results: Tuple[DeletionResult, ...] = field(default_factory=tuple)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def failures(self) -> Tuple[DeletionResult, ...]:
        return tuple(r for r in self.results if not r.success)
