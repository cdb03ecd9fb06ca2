"""
actualization/connectors/executor.py

Job executor contract and its HTTP client.

The executor owns the actualization job record: it accepts a batch,
reports status snapshots, lists per-row entries, and stores files.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Protocol, Sequence

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from actualization.config import ExecutorSettings
from actualization.domain.jobs import FileRef, JobSnapshot
from actualization.errors import ExecutorRequestError, SubmissionError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class JobExecutorService(Protocol):
    async def submit(
        self,
        *,
        rows: Sequence[Mapping[str, Any]],
        schedule_date: str | None,
        region: str,
        file_ref: str | None,
    ) -> str:
        ...

    async def get_status(self, job_id: str) -> JobSnapshot | None:
        ...

    async def get_current_job_for_user(self, user_id: str) -> JobSnapshot | None:
        ...

    async def get_entries(self, job_id: str) -> list[Any]:
        ...

    async def get_default_template(self, region: str) -> FileRef | None:
        ...

    async def upload_file(self, *, file_name: str, content: bytes, region: str) -> FileRef:
        ...

    async def update_job(self, job_id: str, fields: Mapping[str, Any]) -> None:
        ...


class JobSnapshotPayload(BaseModel):
    """
    Executor wire format for one job status read.
    """

    model_config = ConfigDict(extra="ignore")

    job_id: str
    status: str
    succeeded_records: int | None = None
    failed_records: int | None = None
    records_to_process: int | None = None
    records_processed: int | None = None
    status_detail: str | None = None
    schedule_date: str | None = None
    notify_on_complete: bool | None = None
    result_file_id: str | None = None

    def to_snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.job_id,
            status=self.status,
            succeeded_records=self.succeeded_records or 0,
            failed_records=self.failed_records or 0,
            records_to_process=self.records_to_process or 0,
            records_processed=self.records_processed or 0,
            status_detail=self.status_detail,
            schedule_date=self.schedule_date,
            notify_on_complete=bool(self.notify_on_complete),
            result_file_id=self.result_file_id,
        )


class FileRefPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str | None = None
    url: str | None = None

    def to_file_ref(self) -> FileRef:
        return FileRef(id=self.id, title=self.title, url=self.url)


class HTTPJobExecutorClient:
    """
    Job executor client over HTTP with retries and exponential backoff.

    Blocking requests run in a worker thread so callers on the event
    loop only suspend while a response is outstanding.
    """

    def __init__(
        self,
        *,
        settings: ExecutorSettings,
        session: requests.Session | None = None,
    ) -> None:
        if not settings.base_url:
            raise ValueError("Executor base URL is not configured.")
        self._base_url = settings.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._max_retries = settings.max_retries
        self._backoff_initial_seconds = settings.backoff_initial_seconds
        self._backoff_multiplier = settings.backoff_multiplier
        self._default_headers: dict[str, str] = {"Accept": "application/json"}
        if settings.api_token:
            self._default_headers["Authorization"] = f"Bearer {settings.api_token}"

    async def submit(
        self,
        *,
        rows: Sequence[Mapping[str, Any]],
        schedule_date: str | None,
        region: str,
        file_ref: str | None,
    ) -> str:
        body = {
            "file_ref": file_ref,
            "schedule_date": schedule_date,
            "region": region,
            "data": [dict(row) for row in rows],
        }
        payload = await asyncio.to_thread(self._request_json, method="POST", path="/jobs", json=body)
        job_id = payload.get("job_id") if isinstance(payload, dict) else None
        if not job_id:
            raise SubmissionError("The job executor did not accept the actualization batch.")
        return str(job_id)

    async def get_status(self, job_id: str) -> JobSnapshot | None:
        payload = await asyncio.to_thread(self._request_json, method="GET", path=f"/jobs/{job_id}")
        return self._parse_snapshot(payload)

    async def get_current_job_for_user(self, user_id: str) -> JobSnapshot | None:
        payload = await asyncio.to_thread(
            self._request_json,
            method="GET",
            path="/jobs/current",
            params={"user_id": user_id},
        )
        return self._parse_snapshot(payload)

    async def get_entries(self, job_id: str) -> list[Any]:
        payload = await asyncio.to_thread(self._request_json, method="GET", path=f"/jobs/{job_id}/entries")
        if isinstance(payload, dict):
            payload = payload.get("entries")
        return list(payload or [])

    async def get_default_template(self, region: str) -> FileRef | None:
        payload = await asyncio.to_thread(self._request_json, method="GET", path=f"/templates/{region}")
        if not payload:
            return None
        return self._parse_file_ref(payload)

    async def upload_file(self, *, file_name: str, content: bytes, region: str) -> FileRef:
        payload = await asyncio.to_thread(
            self._request_json,
            method="POST",
            path="/files",
            data={"region": region},
            files={"file": (file_name, content)},
        )
        return self._parse_file_ref(payload)

    async def update_job(self, job_id: str, fields: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._request, method="PATCH", path=f"/jobs/{job_id}", json=dict(fields))

    def _parse_snapshot(self, payload: Any) -> JobSnapshot | None:
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not payload:
            return None
        try:
            return JobSnapshotPayload.model_validate(payload).to_snapshot()
        except ValidationError as exc:
            raise ExecutorRequestError("Job executor returned a malformed job snapshot.") from exc

    def _parse_file_ref(self, payload: Any) -> FileRef:
        try:
            return FileRefPayload.model_validate(payload).to_file_ref()
        except ValidationError as exc:
            raise ExecutorRequestError("Job executor returned a malformed file reference.") from exc

    def _request_json(self, *, method: str, path: str, **kwargs: Any) -> Any:
        """
        Execute an HTTP request and return parsed JSON (None for empty bodies).
        """

        response = self._request(method=method, path=path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ExecutorRequestError(f"Job executor response was not valid JSON: {path}") from exc

    def _request(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with exponential backoff on retryable failures.
        """

        url = f"{self._base_url}{path}"
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json,
                    data=data,
                    files=files,
                    headers=self._default_headers,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    detail = _error_detail(exc.response)
                    logger.error(
                        "Executor request failed method=%s status=%s url=%s detail=%s",
                        method,
                        status_code,
                        url,
                        detail,
                    )
                    raise ExecutorRequestError(
                        f"Job executor rejected the request ({status_code}): {detail}"
                    ) from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Executor request retry method=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                method,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error("Executor request exhausted retries method=%s url=%s error=%s", method, url, last_error)
        raise ExecutorRequestError("Job executor request failed after retries.") from last_error


def _error_detail(response: requests.Response | None) -> str:
    if response is None:
        return "no response"
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "").strip()[:500] or response.reason or ""
    if isinstance(payload, dict):
        return str(payload.get("detail") or payload.get("message") or payload)[:500]
    return str(payload)[:500]
