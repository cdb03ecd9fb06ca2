"""
APAC workbook normalizer.

Reads the first sheet. The month column (a header shaped like ``3/2024``)
names the schedule date and carries the Impressions metric.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from actualization.domain.regions import Region
from actualization.domain.rows import ApacRow, clean_text, parse_number
from actualization.normalizers.base import NormalizationResult, RegionNormalizer
from actualization.normalizers.workbook import Workbook, first_value, header_lookup

logger = logging.getLogger(__name__)

MONTH_HEADER_PATTERN = re.compile(r"\d{1,2}/\d{4}")


def detect_month_column(headers: Iterable[str]) -> str | None:
    return next((header for header in headers if MONTH_HEADER_PATTERN.search(header)), None)


class ApacNormalizer(RegionNormalizer):
    region = Region.APAC

    def _normalize(self, workbook: Workbook) -> NormalizationResult:
        sheet = workbook.first_sheet()
        headers = sheet.headers()
        lookup = header_lookup(headers)
        schedule_date = detect_month_column(headers)
        if schedule_date is None:
            logger.warning("APAC workbook has no month column sheet=%s headers=%s", sheet.name, headers)

        rows: list[ApacRow] = []
        skipped = 0
        for record in sheet.records():
            sell_line = clean_text(first_value(record, lookup, "Sell Line"))
            if not sell_line:
                skipped += 1
                continue

            rows.append(
                ApacRow(
                    sell_line=sell_line,
                    clicks=parse_number(first_value(record, lookup, "Clicks")),
                    views=parse_number(first_value(record, lookup, "Views")),
                    completed_views=parse_number(
                        first_value(record, lookup, "Completed Views", "CompletedViews")
                    ),
                    conversions=parse_number(first_value(record, lookup, "Conversions")),
                    impressions=parse_number(record.get(schedule_date)) if schedule_date else 0.0,
                    budget=parse_number(first_value(record, lookup, "Budget")),
                    cost=parse_number(first_value(record, lookup, "Cost")),
                    currency_iso_code=clean_text(
                        first_value(record, lookup, "Currency ISO Code", "CurrencyISOCode")
                    ),
                    dsp=clean_text(first_value(record, lookup, "DSP")),
                )
            )

        return NormalizationResult(
            region=self.region,
            rows=rows,
            schedule_date=schedule_date,
            skipped_rows=skipped,
            sheets_read=[sheet.name],
        )
