"""
In-memory stand-ins for the job executor and poll timer used by the tests.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

from actualization.domain.jobs import FileRef, JobSnapshot


class FakeExecutor:
    """
    Job executor double; status reads replay ``statuses`` and repeat the last one.
    """

    def __init__(self) -> None:
        self.statuses: deque[JobSnapshot] = deque()
        self.status_calls = 0
        self.status_error: Exception | None = None
        self.status_gate: asyncio.Event | None = None
        self.entries: list[Any] = []
        self.entries_calls = 0
        self.submitted: list[dict[str, Any]] = []
        self.submit_error: Exception | None = None
        self.current: JobSnapshot | None = None
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.uploads: list[tuple[str, str]] = []
        self.template: FileRef | None = FileRef(id="tmpl-1", title="Template")

    async def submit(self, *, rows, schedule_date, region, file_ref) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(
            {"rows": list(rows), "schedule_date": schedule_date, "region": region, "file_ref": file_ref}
        )
        return f"job-{len(self.submitted)}"

    async def get_status(self, job_id: str) -> JobSnapshot | None:
        self.status_calls += 1
        if self.status_gate is not None:
            await self.status_gate.wait()
        if self.status_error is not None:
            raise self.status_error
        if not self.statuses:
            return None
        if len(self.statuses) > 1:
            return self.statuses.popleft()
        return self.statuses[0]

    async def get_current_job_for_user(self, user_id: str) -> JobSnapshot | None:
        return self.current

    async def get_entries(self, job_id: str) -> list[Any]:
        self.entries_calls += 1
        return list(self.entries)

    async def get_default_template(self, region: str) -> FileRef | None:
        return self.template

    async def upload_file(self, *, file_name: str, content: bytes, region: str) -> FileRef:
        self.uploads.append((file_name, region))
        return FileRef(id="file-1", title=file_name)

    async def update_job(self, job_id: str, fields: dict[str, Any]) -> None:
        self.updates.append((job_id, dict(fields)))


class ManualTimer:
    """
    Poll timer driven explicitly by the test.
    """

    def __init__(self) -> None:
        self.callback = None
        self.interval_seconds: float | None = None
        self.starts = 0
        self.stops = 0

    @property
    def is_running(self) -> bool:
        return self.callback is not None

    def start(self, callback, interval_seconds: float) -> None:
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.starts += 1

    def stop(self) -> None:
        if self.callback is not None:
            self.stops += 1
        self.callback = None

    async def tick(self) -> None:
        if self.callback is not None:
            await self.callback()


def snapshot(status: str, processed: int = 0, total: int = 4, **kwargs: Any) -> JobSnapshot:
    return JobSnapshot(
        job_id=kwargs.pop("job_id", "job-1"),
        status=status,
        records_processed=processed,
        records_to_process=total,
        **kwargs,
    )
