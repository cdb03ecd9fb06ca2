"""
actualization/domain/rows.py

Canonical row shapes produced by the regional normalizers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Protocol, Union

from actualization.domain.regions import Region


def parse_number(value: Any) -> float:
    """
    Parse a spreadsheet cell as a number; absent or unparsable cells become 0.

    Negative values are preserved as-is.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = str(value).strip().replace(",", "")
    if not text:
        return 0.0
    try:
        number = float(Decimal(text))
    except (InvalidOperation, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class CanonicalRow(Protocol):
    @property
    def key(self) -> str:
        ...

    def to_dict(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class ApacRow:
    """
    APAC sell-line actuals.
    """

    sell_line: str
    clicks: float = 0.0
    views: float = 0.0
    completed_views: float = 0.0
    conversions: float = 0.0
    impressions: float = 0.0
    budget: float = 0.0
    cost: float = 0.0
    currency_iso_code: str = ""
    dsp: str = ""

    @property
    def key(self) -> str:
        return self.sell_line

    def to_dict(self) -> dict[str, Any]:
        return {
            "SellLine": self.sell_line,
            "Clicks": self.clicks,
            "Views": self.views,
            "CompletedViews": self.completed_views,
            "Conversions": self.conversions,
            "Impressions": self.impressions,
            "Budget": self.budget,
            "Cost": self.cost,
            "CurrencyISOCode": self.currency_iso_code,
            "DSP": self.dsp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApacRow":
        return cls(
            sell_line=clean_text(data.get("SellLine")),
            clicks=parse_number(data.get("Clicks")),
            views=parse_number(data.get("Views")),
            completed_views=parse_number(data.get("CompletedViews")),
            conversions=parse_number(data.get("Conversions")),
            impressions=parse_number(data.get("Impressions")),
            budget=parse_number(data.get("Budget")),
            cost=parse_number(data.get("Cost")),
            currency_iso_code=clean_text(data.get("CurrencyISOCode")),
            dsp=clean_text(data.get("DSP")),
        )


@dataclass(frozen=True)
class EmeaRow:
    """
    EMEA schedule actuals.
    """

    sell_line: str
    quantity: float = 0.0
    budget: float = 0.0
    cost: float = 0.0

    @property
    def key(self) -> str:
        return self.sell_line

    def to_dict(self) -> dict[str, Any]:
        return {
            "SellLine": self.sell_line,
            "Quantity": self.quantity,
            "Budget": self.budget,
            "Cost": self.cost,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmeaRow":
        return cls(
            sell_line=clean_text(data.get("SellLine")),
            quantity=parse_number(data.get("Quantity")),
            budget=parse_number(data.get("Budget")),
            cost=parse_number(data.get("Cost")),
        )


@dataclass(frozen=True)
class NtamRow:
    """
    NTAM campaign actuals; rows sharing a campaign id are summed.
    """

    campaign_id: str
    billable_units: float = 0.0
    billable_spend: float = 0.0
    payable_units: float = 0.0
    payable_spend: float = 0.0

    @property
    def key(self) -> str:
        return self.campaign_id

    def merged_with(self, other: "NtamRow") -> "NtamRow":
        return NtamRow(
            campaign_id=self.campaign_id,
            billable_units=self.billable_units + other.billable_units,
            billable_spend=self.billable_spend + other.billable_spend,
            payable_units=self.payable_units + other.payable_units,
            payable_spend=self.payable_spend + other.payable_spend,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaignID": self.campaign_id,
            "billableUnits": self.billable_units,
            "billableSpend": self.billable_spend,
            "payableUnits": self.payable_units,
            "payableSpend": self.payable_spend,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NtamRow":
        return cls(
            campaign_id=clean_text(data.get("campaignID")),
            billable_units=parse_number(data.get("billableUnits")),
            billable_spend=parse_number(data.get("billableSpend")),
            payable_units=parse_number(data.get("payableUnits")),
            payable_spend=parse_number(data.get("payableSpend")),
        )


AnyRow = Union[ApacRow, EmeaRow, NtamRow]

_ROW_TYPES: dict[str, type] = {
    Region.APAC: ApacRow,
    Region.EMEA: EmeaRow,
    Region.NTAM: NtamRow,
}


def rows_from_dicts(region: str, items: list[Mapping[str, Any]]) -> list[AnyRow]:
    """
    Rebuild canonical rows from serialized dicts, dropping rows without a key.
    """

    row_type = _ROW_TYPES.get((region or "").strip().upper(), ApacRow)
    rows: list[AnyRow] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        row = row_type.from_dict(item)
        if row.key:
            rows.append(row)
    return rows
