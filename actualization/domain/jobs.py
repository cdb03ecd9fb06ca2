"""
actualization/domain/jobs.py

Job snapshot, process state, and progress models for the job lifecycle.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone


class JobStatus:
    QUEUED = "Queued"
    PREPARING = "Preparing"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"

    IN_FLIGHT: frozenset[str] = frozenset({QUEUED, PREPARING, RUNNING})
    TERMINAL: frozenset[str] = frozenset({COMPLETED, FAILED})


class ProcessState:
    PENDING = "pending"
    PREVIEW = "preview"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass(frozen=True)
class FileRef:
    """
    Reference to a file held by the executor's file storage.
    """

    id: str
    title: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class JobSnapshot:
    """
    Point-in-time read of one submitted batch on the job executor.
    """

    job_id: str
    status: str
    succeeded_records: int = 0
    failed_records: int = 0
    records_to_process: int = 0
    records_processed: int = 0
    status_detail: str | None = None
    schedule_date: str | None = None
    notify_on_complete: bool = False
    result_file_id: str | None = None

    @property
    def is_in_flight(self) -> bool:
        return self.status in JobStatus.IN_FLIGHT

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL


@dataclass(frozen=True)
class Progress:
    """
    Display progress: integer indicator plus a 2-decimal percentage.
    """

    processed: int = 0
    to_process: int = 0
    percentage: float = 0.0
    indicator: int = 0


def compute_progress(records_processed: int | None, records_to_process: int | None) -> Progress:
    """
    Compute progress from processed / to-process counts.

    A zero or missing denominator yields 0 rather than NaN, and the
    percentage is clamped to [0, 100].
    """

    processed = max(0, int(records_processed or 0))
    to_process = max(0, int(records_to_process or 0))
    if to_process == 0:
        return Progress(processed=processed, to_process=to_process)

    raw = processed / to_process * 100
    raw = min(100.0, max(0.0, raw))
    percentage = round(raw, 2)
    return Progress(
        processed=processed,
        to_process=to_process,
        percentage=percentage,
        indicator=int(math.floor(percentage)),
    )


@dataclass(frozen=True)
class Notice:
    """
    One user-visible message (toast) raised by the controller.
    """

    level: str
    title: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FileUploadedEvent:
    """
    "File uploaded" notification delivered by the event transport.
    """

    file_ref: str
    file_data: str
    record_count: int = 0

