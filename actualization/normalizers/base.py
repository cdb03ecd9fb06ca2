"""
actualization/normalizers/base.py

Shared contract for the regional workbook normalizers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from actualization.domain.regions import RegionSchema, schema_for
from actualization.domain.rows import AnyRow
from actualization.errors import ParseError
from actualization.normalizers.workbook import Workbook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizationResult:
    """
    Canonical rows extracted from one workbook.
    """

    region: str
    rows: list[AnyRow]
    schedule_date: str | None = None
    skipped_rows: int = 0
    sheets_read: list[str] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.rows)

    def rows_as_dicts(self) -> list[dict]:
        return [row.to_dict() for row in self.rows]


class RegionNormalizer(ABC):
    """
    One strategy per region; each turns a workbook into canonical rows.
    """

    region: str

    @property
    def schema(self) -> RegionSchema:
        return schema_for(self.region)

    def normalize(self, workbook: Workbook) -> NormalizationResult:
        """
        Normalize ``workbook``; raises ParseError when no sheet or no row is found.
        """

        if not workbook.sheets:
            raise ParseError("Workbook does not contain any sheet.")

        result = self._normalize(workbook)
        if not result.rows:
            raise ParseError("No rows found in Excel.")

        logger.info(
            "Workbook normalized region=%s rows=%s skipped=%s schedule_date=%s sheets=%s",
            result.region,
            result.record_count,
            result.skipped_rows,
            result.schedule_date,
            result.sheets_read,
        )
        return result

    @abstractmethod
    def _normalize(self, workbook: Workbook) -> NormalizationResult:
        """
        Region-specific extraction; may return an empty row list.
        """
