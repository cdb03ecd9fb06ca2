"""
actualization/services/reconciliation.py

Fetches per-row job entries, decodes them into ResultEntry objects, and
filters them client-side.

Decoding never raises: a payload that is not valid JSON, or an error
message that is not a structured list, falls back to the raw text.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping

from actualization.connectors.executor import JobExecutorService
from actualization.domain.results import ResultEntry
from actualization.errors import DecodeError

logger = logging.getLogger(__name__)

ALL_RECORDS = "all"


def decode_error_message(raw: Any) -> str | None:
    """
    Return the first message of a structured error list, else ``raw`` unchanged.
    """

    if raw is None:
        return None
    try:
        return _first_error_message(raw)
    except DecodeError:
        logger.debug("Error message kept as raw text value=%r", raw)
        return raw if isinstance(raw, str) else str(raw)


def _first_error_message(raw: Any) -> str:
    try:
        decoded = json.loads(raw) if isinstance(raw, str) else raw
    except (TypeError, ValueError) as exc:
        raise DecodeError("Error message is not JSON.") from exc
    if not isinstance(decoded, list) or not decoded:
        raise DecodeError("Error message is not a structured list.")
    first = decoded[0]
    if not isinstance(first, Mapping) or first.get("message") is None:
        raise DecodeError("Error list entry carries no message.")
    return str(first["message"])


def _decode_payload(raw: Any) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DecodeError("Entry payload is not JSON.") from exc
    if not isinstance(decoded, dict):
        raise DecodeError("Entry payload is not a JSON object.")
    return decoded


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def build_result_entry(raw_entry: Any) -> ResultEntry:
    """
    Decode one raw executor entry into a ResultEntry.
    """

    raw_payload = raw_entry
    if isinstance(raw_entry, Mapping) and "payload" in raw_entry:
        raw_payload = raw_entry["payload"]
    try:
        payload = _decode_payload(raw_payload)
    except DecodeError:
        logger.warning("Job entry payload could not be decoded; kept as raw text")
        return ResultEntry(
            is_success=False,
            error_message=raw_payload if isinstance(raw_payload, str) else str(raw_payload),
        )

    sell_line_link: str | None = None
    sell_line_record = payload.pop("sellLineRecord", None)
    if isinstance(sell_line_record, Mapping) and sell_line_record.get("Id"):
        sell_line_link = f"/{sell_line_record['Id']}"

    schedule_id = payload.pop("placementMonthlySchId", None)
    schedule_link = f"/{schedule_id}" if schedule_id else ""

    is_success = _coerce_bool(payload.pop("IsSuccess", False))
    error_message = decode_error_message(payload.pop("ErrorMessage", None))
    payload.pop("SellLineId", None)

    return ResultEntry(
        is_success=is_success,
        error_message=error_message,
        sell_line_link=sell_line_link,
        schedule_link=schedule_link,
        fields=payload,
    )


class ResultReconciler:
    """
    Reads a job's per-row outcomes from the executor.
    """

    def __init__(self, executor: JobExecutorService) -> None:
        self._executor = executor

    async def fetch_results(self, job_id: str) -> list[ResultEntry]:
        raw_entries = await self._executor.get_entries(job_id)
        entries = [build_result_entry(raw) for raw in raw_entries]
        logger.info(
            "Job results fetched job_id=%s entries=%s succeeded=%s",
            job_id,
            len(entries),
            sum(1 for entry in entries if entry.is_success),
        )
        return entries


# ---------------------------------------------------------------------------
# Client-side filters (pure)
# ---------------------------------------------------------------------------


def filter_by_error_message(entries: Iterable[ResultEntry], text: str | None) -> list[ResultEntry]:
    entries = list(entries)
    needle = (text or "").lower()
    if not needle:
        return entries
    return [entry for entry in entries if needle in (entry.error_message or "").lower()]


def filter_by_key(entries: Iterable[ResultEntry], text: str | None, *, key_field: str) -> list[ResultEntry]:
    entries = list(entries)
    needle = (text or "").lower()
    if not needle:
        return entries
    return [entry for entry in entries if needle in str(entry.get(key_field) or "").lower()]


def filter_by_success(entries: Iterable[ResultEntry], option: str | None) -> list[ResultEntry]:
    """
    Keep entries whose success flag, as text, equals ``option``; "all" keeps every entry.
    """

    entries = list(entries)
    selected = str(option if option is not None else ALL_RECORDS).strip().lower()
    if selected == ALL_RECORDS:
        return entries
    return [entry for entry in entries if str(entry.is_success).lower() == selected]


def apply_filters(
    entries: Iterable[ResultEntry],
    *,
    key_field: str,
    error_text: str | None = None,
    key_text: str | None = None,
    success: str | None = ALL_RECORDS,
) -> list[ResultEntry]:
    filtered = filter_by_success(entries, success)
    filtered = filter_by_key(filtered, key_text, key_field=key_field)
    return filter_by_error_message(filtered, error_text)
