"""
actualization/domain/results.py

Per-row execution outcome decoded from job entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ResultEntry:
    """
    One row's execution outcome plus its original canonical fields.

    ``sell_line_link`` and ``schedule_link`` are path-prefixed references
    to the records the row touched; ``schedule_link`` is an empty string
    (never None) when the executor did not link a schedule.
    """

    is_success: bool
    error_message: str | None
    sell_line_link: str | None = None
    schedule_link: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.fields)
        payload["IsSuccess"] = self.is_success
        payload["ErrorMessage"] = self.error_message
        payload["placementMonthlySchId"] = self.schedule_link
        if self.sell_line_link is not None:
            payload["SellLineId"] = self.sell_line_link
        return payload
