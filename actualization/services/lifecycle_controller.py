"""
actualization/services/lifecycle_controller.py

Drives one user's actualization session through its process states:

    pending -> preview -> in_progress -> complete

Rows enter Preview from a workbook upload or a file-uploaded event.
``submit`` hands them to the job executor and starts a recurring status
poll. The poll stops as soon as the job reaches Completed or Failed, or
the local failed flag is set. Completed jobs load their per-row results
once; any other terminal status surfaces a JobFailed notice and resets
the session so the user can start again.

Every remote call is awaited on the event loop. A sequence token is
bumped on submit, resume, reset and close; responses that return after
the token moved on are discarded.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import date

from actualization.connectors.executor import JobExecutorService
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
from actualization.domain.regions import ColumnSpec, Region, RegionSchema, is_known_region, schema_for
from actualization.domain.results import ResultEntry
from actualization.domain.rows import AnyRow, rows_from_dicts
from actualization.errors import (
    ExecutorRequestError,
    JobFailed,
    ParseError,
    PollError,
    ProcessStateError,
    SubmissionError,
)
from actualization.logging_utils import log_event
from actualization.normalizers import NormalizationResult, normalize, read_workbook
from actualization.scheduler.poll_timer import PollTimer
from actualization.services.reconciliation import ALL_RECORDS, ResultReconciler, apply_filters

logger = logging.getLogger(__name__)

PREVIEW_TITLE = "Actualization Preview"
RESULTS_TITLE = "Actualization Results"


@dataclass
class ResultFilters:
    error_text: str = ""
    key_text: str = ""
    success: str = ALL_RECORDS


@dataclass
class LifecycleState:
    """
    Mutable session state; owned and mutated only by the controller.
    """

    process_state: str = ProcessState.PENDING
    rows: list[AnyRow] = field(default_factory=list)
    schedule_date: str | None = None
    file_ref: str | None = None
    records_to_process: int = 0
    job_id: str | None = None
    job: JobSnapshot | None = None
    job_started: bool = False
    completed: bool = False
    failed: bool = False
    status_detail: str = ""
    progress: Progress = field(default_factory=Progress)
    results: list[ResultEntry] = field(default_factory=list)
    filtered_results: list[ResultEntry] = field(default_factory=list)
    filters: ResultFilters = field(default_factory=ResultFilters)
    notify_on_complete: bool = False
    result_file_id: str | None = None
    table_title: str | None = None


class ActualizationController:
    """
    Owns one user's process state, job polling, and result view.
    """

    def __init__(
        self,
        *,
        user_id: str,
        executor: JobExecutorService,
        timer: PollTimer,
        region: str = Region.APAC,
        poll_interval_seconds: float = 5.0,
        max_notices: int = 50,
        fetch_partial_results: bool = True,
    ) -> None:
        self.user_id = user_id
        self._executor = executor
        self._timer = timer
        self._reconciler = ResultReconciler(executor)
        self._region = schema_for(region).region
        self._poll_interval_seconds = poll_interval_seconds
        self._fetch_partial_results = fetch_partial_results
        self._sequence = 0
        self._poll_in_flight = False
        self.state = LifecycleState()
        self.notices: deque[Notice] = deque(maxlen=max(1, max_notices))
        self.default_template: FileRef | None = None
        self.last_error: Exception | None = None
        self.region_selection_required = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def region(self) -> str:
        return self._region

    @property
    def schema(self) -> RegionSchema:
        return schema_for(self._region)

    @property
    def process_state(self) -> str:
        return self.state.process_state

    @property
    def job_id(self) -> str | None:
        return self.state.job_id

    @property
    def is_polling(self) -> bool:
        return self._timer.is_running

    @property
    def has_running_job(self) -> bool:
        return self.state.job is not None and self.state.job.is_in_flight

    @property
    def can_start(self) -> bool:
        return bool(self.state.rows) and not self.has_running_job and not self.state.job_started

    @property
    def can_upload(self) -> bool:
        return not self.has_running_job and not self.state.job_started

    @property
    def show_results(self) -> bool:
        return (
            self.state.process_state in (ProcessState.PREVIEW, ProcessState.COMPLETE)
            and bool(self.state.results)
        )

    @property
    def succeeded_count(self) -> int:
        return self.state.job.succeeded_records if self.state.job is not None else 0

    @property
    def failed_count(self) -> int:
        return self.state.job.failed_records if self.state.job is not None else 0

    @property
    def notify_on_complete(self) -> bool:
        job_flag = self.state.job.notify_on_complete if self.state.job is not None else False
        return job_flag or self.state.notify_on_complete

    @property
    def template_label(self) -> str:
        return self.schema.template_label

    @property
    def preview_rows(self) -> list[dict]:
        return [row.to_dict() for row in self.state.rows]

    def columns(self) -> list[ColumnSpec]:
        if self.state.process_state in (ProcessState.IN_PROGRESS, ProcessState.COMPLETE):
            return self.schema.result_columns()
        if self.state.process_state == ProcessState.PREVIEW:
            return self.schema.preview_table_columns()
        return list(self.schema.preview_columns)

    def result_file_reference(self) -> str:
        if not self.state.result_file_id:
            raise ProcessStateError("No result URL available!")
        return self.state.result_file_id

    def template_reference(self) -> FileRef:
        if self.default_template is None:
            raise ProcessStateError("No result URL available!")
        return self.default_template

    # ------------------------------------------------------------------
    # Region selection
    # ------------------------------------------------------------------

    async def open(self, *, user_region: str | None = None, region: str | None = None) -> None:
        """
        Prepare the session for the user's region.

        Users whose profile region is Global must pick one; others always
        run with their own region. A profile region outside APAC, EMEA and
        NTAM runs with the APAC schema.
        """

        if user_region and user_region.strip().lower() != Region.GLOBAL.lower():
            await self.select_region(schema_for(user_region).region)
            return
        if region:
            await self.select_region(region)
            return
        self.region_selection_required = True

    async def select_region(self, region: str) -> None:
        if not is_known_region(region):
            raise ProcessStateError(f"Unknown region: {region!r}.")
        if self.state.job_started and schema_for(region).region != self._region:
            raise ProcessStateError("The region cannot change while an actualization job is running.")

        self._region = schema_for(region).region
        self.region_selection_required = False
        await self.load_default_template()
        await self.resume_if_running()

    async def load_default_template(self) -> FileRef | None:
        try:
            self.default_template = await self._executor.get_default_template(self._region)
        except ExecutorRequestError as exc:
            self._report_error(exc)
            return None
        return self.default_template

    # ------------------------------------------------------------------
    # Data entry
    # ------------------------------------------------------------------

    async def upload(self, *, file_name: str, content: bytes) -> NormalizationResult:
        """
        Normalize an uploaded workbook, store the file, and enter Preview.
        """

        if not self.can_upload:
            raise ProcessStateError("A job is running; wait for it to complete before uploading.")
        if not self.schema.accepts(file_name):
            raise ParseError(
                f"Unsupported file type {file_name!r}. Accepted: {', '.join(self.schema.accepted_extensions)}."
            )

        region = self._region
        try:
            result = await asyncio.to_thread(self._normalize_file, region, file_name, content)
        except ParseError as exc:
            self._report_error(exc)
            raise

        try:
            stored = await self._executor.upload_file(file_name=file_name, content=content, region=region)
        except ExecutorRequestError as exc:
            self._notify("error", "Error", f"Error saving file. {exc}")
            self.last_error = exc
            raise

        self._enter_preview(
            rows=result.rows,
            schedule_date=result.schedule_date,
            file_ref=stored.id,
            records_to_process=result.record_count,
        )
        self._notify(
            "success",
            "Success",
            f"File uploaded successfully. {result.record_count} records were extracted from the file.",
        )
        return result

    def accept_uploaded_file(self, event: FileUploadedEvent) -> None:
        """
        Enter Preview from a "file uploaded" notification (APAC rows).
        """

        if not self.can_upload:
            raise ProcessStateError("A job is running; wait for it to complete before uploading.")
        try:
            items = json.loads(event.file_data)
        except ValueError as exc:
            raise ParseError("Uploaded file data is not valid JSON.") from exc
        if not isinstance(items, list):
            raise ParseError("Uploaded file data must be a list of rows.")

        self._region = Region.APAC
        self.region_selection_required = False
        rows = rows_from_dicts(Region.APAC, items)
        self._enter_preview(
            rows=rows,
            schedule_date=date.today().strftime("%Y-%m"),
            file_ref=event.file_ref,
            records_to_process=event.record_count,
        )
        self._notify(
            "success",
            "Success",
            f"File uploaded successfully. {event.record_count} records ready for preview.",
        )

    def load_preview(self, result: NormalizationResult, *, file_ref: str | None) -> None:
        self._region = schema_for(result.region).region
        self._enter_preview(
            rows=result.rows,
            schedule_date=result.schedule_date,
            file_ref=file_ref,
            records_to_process=result.record_count,
        )

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    async def submit(self) -> str:
        """
        Submit the previewed rows; on success enter InProgress and start polling.

        Raises SubmissionError when the executor rejects the batch; the
        session then stays in Preview so the caller can retry.
        """

        if not self.state.rows:
            raise ProcessStateError("There is no actualization data to process.")
        if self.has_running_job or self.state.job_started:
            raise ProcessStateError("There is a running actualization job. Please wait for the job to complete.")

        self._sequence += 1
        token = self._sequence
        try:
            job_id = await self._executor.submit(
                rows=self.preview_rows,
                schedule_date=self.state.schedule_date,
                region=self._region,
                file_ref=self.state.file_ref,
            )
        except (ExecutorRequestError, SubmissionError) as exc:
            error = exc if isinstance(exc, SubmissionError) else SubmissionError(str(exc))
            self._report_error(error)
            if error is exc:
                raise
            raise error from exc

        if token != self._sequence:
            logger.warning("Submission response discarded; session changed meanwhile job_id=%s", job_id)
            return job_id

        self.state.failed = False
        self.state.completed = False
        self.state.job_started = True
        self.state.job_id = job_id
        self.state.status_detail = "Preparing"
        self.state.process_state = ProcessState.IN_PROGRESS
        self.state.table_title = RESULTS_TITLE
        self.last_error = None
        log_event(
            logger,
            logging.INFO,
            "actualization_submitted",
            user_id=self.user_id,
            region=self._region,
            job_id=job_id,
            rows=len(self.state.rows),
            schedule_date=self.state.schedule_date,
        )

        self._start_polling()
        await self.poll()
        return job_id

    async def poll(self) -> JobSnapshot | None:
        """
        Read the job status once and apply it.

        Transient failures are logged and leave the timer running.
        At most one status read is outstanding; a call made meanwhile is a no-op.
        """

        if self._should_stop_polling():
            self._stop_polling()
            return None
        job_id = self.state.job_id
        if job_id is None:
            return None

        if self._poll_in_flight:
            logger.info("Poll skipped; previous status read still pending job_id=%s", job_id)
            return None

        token = self._sequence
        self._poll_in_flight = True
        try:
            snapshot = await self._executor.get_status(job_id)
        except ExecutorRequestError as exc:
            poll_error = PollError(f"Status poll failed for job {job_id}: {exc}")
            logger.warning("%s", poll_error)
            self.last_error = poll_error
            return None
        finally:
            self._poll_in_flight = False

        if token != self._sequence:
            logger.info("Stale poll response discarded job_id=%s", job_id)
            return None
        if snapshot is None:
            return None

        await self._apply_snapshot(snapshot, token)
        return snapshot

    async def resume_if_running(self) -> JobSnapshot | None:
        """
        Re-attach to the user's in-flight job instead of allowing a duplicate submission.
        """

        try:
            snapshot = await self._executor.get_current_job_for_user(self.user_id)
        except ExecutorRequestError as exc:
            self._report_error(exc)
            return None
        if snapshot is None:
            return None

        self.state.job = snapshot
        if not snapshot.is_in_flight:
            return snapshot
        if self.state.job_id == snapshot.job_id and self.is_polling:
            return snapshot

        self._sequence += 1
        token = self._sequence
        self.state.failed = False
        self.state.completed = False
        self.state.job_started = True
        self.state.job_id = snapshot.job_id
        self.state.status_detail = snapshot.status_detail or self.state.status_detail
        self.state.schedule_date = snapshot.schedule_date
        self.state.process_state = ProcessState.IN_PROGRESS
        self.state.table_title = RESULTS_TITLE
        self._update_progress(snapshot)
        self._notify(
            "warning",
            "Warning",
            "There is a running actualization job. Please wait for the job to complete.",
        )
        log_event(
            logger,
            logging.INFO,
            "actualization_resumed",
            user_id=self.user_id,
            job_id=snapshot.job_id,
            status=snapshot.status,
        )

        self._start_polling()
        if self._fetch_partial_results:
            await self._load_results(token)
        return snapshot

    def reset(self) -> None:
        """
        Start a new job: clear rows, job identifiers, counts, schedule date,
        and filters, and return to Pending. Safe to call repeatedly.
        """

        self._sequence += 1
        self._stop_polling()
        failed = self.state.failed
        self.state = LifecycleState(failed=failed)
        log_event(logger, logging.INFO, "actualization_reset", user_id=self.user_id, region=self._region)

    def close(self) -> None:
        """
        Cancel the poll timer when the owning session ends.
        """

        self._sequence += 1
        self._stop_polling()

    async def fetch_results(self) -> list[ResultEntry]:
        if self.state.job_id is None:
            raise ProcessStateError("The actualization job is not found. Please try again later.")
        await self._load_results(self._sequence)
        return self.state.results

    async def request_notify_on_complete(self) -> None:
        job_id = self.state.job.job_id if self.state.job is not None else self.state.job_id
        if not job_id:
            error = ProcessStateError("The actualization job is not found. Please try again later.")
            self._report_error(error)
            raise error

        try:
            await self._executor.update_job(job_id, {"notify_on_complete": True})
        except ExecutorRequestError as exc:
            self._report_error(exc)
            raise

        self.state.notify_on_complete = True
        self._notify(
            "success",
            "Success",
            "You will get an e-mail & notification when the actualization is completed.",
        )

    # ------------------------------------------------------------------
    # Result filters
    # ------------------------------------------------------------------

    def set_error_filter(self, text: str | None) -> list[ResultEntry]:
        self.state.filters.error_text = text or ""
        return self._refilter()

    def set_key_filter(self, text: str | None) -> list[ResultEntry]:
        self.state.filters.key_text = text or ""
        return self._refilter()

    def set_success_filter(self, option: str | None) -> list[ResultEntry]:
        selected = (option or ALL_RECORDS).strip().lower()
        if selected == ALL_RECORDS:
            return self.reset_filters()
        self.state.filters.success = selected
        return self._refilter()

    def reset_filters(self) -> list[ResultEntry]:
        self.state.filters = ResultFilters()
        self.state.filtered_results = list(self.state.results)
        return self.state.filtered_results

    def _refilter(self) -> list[ResultEntry]:
        filters = self.state.filters
        self.state.filtered_results = apply_filters(
            self.state.results,
            key_field=self.schema.key_field,
            error_text=filters.error_text,
            key_text=filters.key_text,
            success=filters.success,
        )
        return self.state.filtered_results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize_file(self, region: str, file_name: str, content: bytes) -> NormalizationResult:
        return normalize(region, read_workbook(file_name, content))

    def _enter_preview(
        self,
        *,
        rows: list[AnyRow],
        schedule_date: str | None,
        file_ref: str | None,
        records_to_process: int,
    ) -> None:
        self.state.rows = list(rows)
        self.state.schedule_date = schedule_date
        self.state.file_ref = file_ref
        self.state.records_to_process = records_to_process
        self.state.results = [
            ResultEntry(is_success=False, error_message=None, fields=row.to_dict()) for row in rows
        ]
        self.state.filters = ResultFilters()
        self.state.filtered_results = list(self.state.results)
        self.state.completed = False
        self.state.table_title = PREVIEW_TITLE
        self.state.process_state = ProcessState.PREVIEW

    def _should_stop_polling(self) -> bool:
        return self.state.completed or self.state.failed

    def _start_polling(self) -> None:
        self._timer.start(self._on_tick, self._poll_interval_seconds)

    def _stop_polling(self) -> None:
        self._timer.stop()

    async def _on_tick(self) -> None:
        if self._should_stop_polling():
            self._stop_polling()
            return
        await self.poll()

    async def _apply_snapshot(self, snapshot: JobSnapshot, token: int) -> None:
        if self._should_stop_polling():
            return
        self.state.job = snapshot
        if snapshot.schedule_date:
            self.state.schedule_date = snapshot.schedule_date
        if snapshot.status_detail is not None:
            self.state.status_detail = snapshot.status_detail

        if snapshot.status in JobStatus.IN_FLIGHT:
            self._update_progress(snapshot)
        elif snapshot.status == JobStatus.COMPLETED:
            await self._handle_completed(snapshot, token)
        else:
            self._handle_failed(snapshot)

    async def _handle_completed(self, snapshot: JobSnapshot, token: int) -> None:
        self.state.completed = True
        self._stop_polling()
        self._update_progress(snapshot)
        self.state.result_file_id = snapshot.result_file_id or snapshot.job_id
        self.state.status_detail = "Actualization Job completed."
        self.state.process_state = ProcessState.COMPLETE
        log_event(
            logger,
            logging.INFO,
            "actualization_completed",
            user_id=self.user_id,
            job_id=snapshot.job_id,
            succeeded=snapshot.succeeded_records,
            failed=snapshot.failed_records,
        )
        self._notify(
            "success",
            "Success",
            "The actualization job is completed. Please check the results below.",
        )
        await self._load_results(token)

    def _handle_failed(self, snapshot: JobSnapshot) -> None:
        self.state.failed = True
        self._stop_polling()
        detail = snapshot.status_detail or ""
        error = JobFailed(
            f"The actualization job failed. {detail} Ask your System Administrator to check the logs.",
            status=snapshot.status,
            status_detail=snapshot.status_detail,
        )
        log_event(
            logger,
            logging.ERROR,
            "actualization_failed",
            user_id=self.user_id,
            job_id=snapshot.job_id,
            status=snapshot.status,
            status_detail=snapshot.status_detail,
        )
        self._report_error(error)
        self.reset()

    def _update_progress(self, snapshot: JobSnapshot) -> None:
        self.state.progress = compute_progress(snapshot.records_processed, snapshot.records_to_process)
        self.state.records_to_process = snapshot.records_to_process

    async def _load_results(self, token: int) -> None:
        job_id = self.state.job_id
        if job_id is None:
            return
        try:
            results = await self._reconciler.fetch_results(job_id)
        except ExecutorRequestError as exc:
            self._report_error(exc)
            return
        if token != self._sequence:
            logger.info("Stale results discarded job_id=%s", job_id)
            return
        self.state.results = results
        self.state.filters = ResultFilters()
        self.state.filtered_results = list(results)

    def _report_error(self, error: Exception) -> None:
        self.last_error = error
        self._notify("error", "Error", str(error))

    def _notify(self, level: str, title: str, message: str) -> None:
        self.notices.append(Notice(level=level, title=title, message=message))
        log_level = {"error": logging.ERROR, "warning": logging.WARNING}.get(level, logging.INFO)
        logger.log(log_level, "Notice user_id=%s level=%s message=%s", self.user_id, level, message)
