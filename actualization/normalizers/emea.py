"""
EMEA workbook normalizer.

The first row under the header is a label row and is never data. The
second header names the schedule date and carries Quantity. Budget and
Cost sit under unlabeled header slots and are read by their placeholder
names (``__EMPTY`` and ``__EMPTY_1``); this positional fallback only
applies to the EMEA layout.
"""

from __future__ import annotations

from actualization.domain.regions import Region
from actualization.domain.rows import EmeaRow, clean_text, parse_number
from actualization.normalizers.base import NormalizationResult, RegionNormalizer
from actualization.normalizers.workbook import EMPTY_HEADER, Workbook, first_value, header_lookup

BUDGET_HEADER = EMPTY_HEADER
COST_HEADER = f"{EMPTY_HEADER}_1"


class EmeaNormalizer(RegionNormalizer):
    region = Region.EMEA

    def _normalize(self, workbook: Workbook) -> NormalizationResult:
        sheet = workbook.first_sheet()
        headers = sheet.headers()
        lookup = header_lookup(headers)

        schedule_date: str | None = None
        if len(headers) > 1 and not headers[1].startswith(EMPTY_HEADER):
            schedule_date = headers[1]

        rows: list[EmeaRow] = []
        skipped = 0
        for record in sheet.records()[1:]:
            sell_line = clean_text(first_value(record, lookup, "Schedule Name"))
            if not sell_line:
                skipped += 1
                continue

            rows.append(
                EmeaRow(
                    sell_line=sell_line,
                    quantity=parse_number(record.get(schedule_date)) if schedule_date else 0.0,
                    budget=parse_number(record.get(BUDGET_HEADER)),
                    cost=parse_number(record.get(COST_HEADER)),
                )
            )

        return NormalizationResult(
            region=self.region,
            rows=rows,
            schedule_date=schedule_date,
            skipped_rows=skipped,
            sheets_read=[sheet.name],
        )
