"""
actualization/domain package marker.
"""

from actualization.domain.jobs import (
    FileRef,
    FileUploadedEvent,
    JobSnapshot,
    JobStatus,
    Notice,
    ProcessState,
    Progress,
    compute_progress,
)
from actualization.domain.regions import (
    AggregationPolicy,
    ColumnSpec,
    Region,
    RegionSchema,
    schema_for,
)
from actualization.domain.results import ResultEntry
from actualization.domain.rows import AnyRow, ApacRow, EmeaRow, NtamRow, parse_number

__all__ = [
    "AggregationPolicy",
    "AnyRow",
    "ApacRow",
    "ColumnSpec",
    "EmeaRow",
    "FileRef",
    "FileUploadedEvent",
    "JobSnapshot",
    "JobStatus",
    "Notice",
    "NtamRow",
    "ProcessState",
    "Progress",
    "Region",
    "RegionSchema",
    "ResultEntry",
    "compute_progress",
    "parse_number",
    "schema_for",
]
