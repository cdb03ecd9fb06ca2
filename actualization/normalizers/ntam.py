"""
NTAM (US) workbook normalizer.

Every sheet is scanned. Rows above the header carrying the campaign id
column are ignored, and rows sharing a campaign id are summed across
all sheets into one row.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from actualization.domain.regions import Region
from actualization.domain.rows import NtamRow, clean_text, parse_number
from actualization.normalizers.base import NormalizationResult, RegionNormalizer
from actualization.normalizers.workbook import Workbook, first_value, header_lookup, is_blank, normalize_header

logger = logging.getLogger(__name__)

KEY_HEADER = "SF_CAMPAIGN_ID"
BILLABLE_UNITS_HEADER = "Actualized Billable Units"
BILLABLE_SPEND_HEADER = "Actualized Billable Spend"
PAYABLE_UNITS_HEADER = "Actualized Payable Units"
PAYABLE_SPEND_HEADER = "Actualized Payable Spend"

_NORMALIZED_KEY = normalize_header(KEY_HEADER)


def _is_header_row(row: Sequence[Any]) -> bool:
    return any(normalize_header(value) == _NORMALIZED_KEY for value in row if not is_blank(value))


class NtamNormalizer(RegionNormalizer):
    region = Region.NTAM

    def _normalize(self, workbook: Workbook) -> NormalizationResult:
        merged: dict[str, NtamRow] = {}
        skipped = 0
        sheets_read: list[str] = []

        for sheet in workbook.sheets:
            header_row = sheet.find_row(_is_header_row)
            if header_row is None:
                logger.debug("NTAM sheet skipped, no %s header sheet=%s", KEY_HEADER, sheet.name)
                continue

            sheets_read.append(sheet.name)
            lookup = header_lookup(sheet.headers(header_row))
            for record in sheet.records(header_row):
                campaign_id = clean_text(first_value(record, lookup, KEY_HEADER))
                # Repeated header lines inside a sheet are not data.
                if not campaign_id or normalize_header(campaign_id) == _NORMALIZED_KEY:
                    skipped += 1
                    continue

                row = NtamRow(
                    campaign_id=campaign_id,
                    billable_units=parse_number(first_value(record, lookup, BILLABLE_UNITS_HEADER)),
                    billable_spend=parse_number(first_value(record, lookup, BILLABLE_SPEND_HEADER)),
                    payable_units=parse_number(first_value(record, lookup, PAYABLE_UNITS_HEADER)),
                    payable_spend=parse_number(first_value(record, lookup, PAYABLE_SPEND_HEADER)),
                )
                previous = merged.get(campaign_id)
                merged[campaign_id] = previous.merged_with(row) if previous is not None else row

        return NormalizationResult(
            region=self.region,
            rows=list(merged.values()),
            schedule_date=None,
            skipped_rows=skipped,
            sheets_read=sheets_read,
        )
