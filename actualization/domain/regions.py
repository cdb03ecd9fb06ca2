"""
actualization/domain/regions.py

Region identifiers and the per-region column schema registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class Region:
    APAC = "APAC"
    EMEA = "EMEA"
    NTAM = "NTAM"
    GLOBAL = "Global"

    ALL: tuple[str, ...] = (APAC, NTAM, EMEA)


class AggregationPolicy:
    REPLACE = "replace"
    ACCUMULATE_BY_KEY = "accumulate_by_key"


@dataclass(frozen=True)
class ColumnSpec:
    """
    One table column: display label, row field, and optional cell type.
    """

    label: str
    field_name: str
    type: str | None = None
    wrap_text: bool = False
    link_label_field: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"label": self.label, "fieldName": self.field_name}
        if self.type:
            payload["type"] = self.type
        if self.wrap_text:
            payload["wrapText"] = True
        if self.link_label_field:
            payload["typeAttributes"] = {
                "label": {"fieldName": self.link_label_field},
                "target": "_blank",
            }
        return payload


@dataclass(frozen=True)
class RegionSchema:
    """
    Column layout, key semantics, and upload rules for one region.
    """

    region: str
    key_field: str
    preview_first_column: ColumnSpec
    result_first_column: ColumnSpec
    preview_columns: tuple[ColumnSpec, ...]
    accepted_extensions: tuple[str, ...]
    aggregation_policy: str
    template_label: str
    secondary_key_column: ColumnSpec | None = None
    status_columns: tuple[ColumnSpec, ...] = field(default_factory=tuple)

    def preview_table_columns(self) -> list[ColumnSpec]:
        return [self.preview_first_column, *self.preview_columns]

    def result_columns(self) -> list[ColumnSpec]:
        """
        Linked first column, the optional secondary key, the preview
        columns, then the success flag and error message.
        """

        columns = [self.result_first_column]
        if self.secondary_key_column is not None:
            columns.append(self.secondary_key_column)
        columns.extend(self.preview_columns)
        columns.extend(self.status_columns)
        return columns

    def accepts(self, file_name: str) -> bool:
        lowered = (file_name or "").strip().lower()
        return any(lowered.endswith(ext) for ext in self.accepted_extensions)


_BASE_EXTENSIONS: tuple[str, ...] = (".xls", ".xlsx")

_STATUS_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(label="Is Success", field_name="IsSuccess", type="boolean"),
    ColumnSpec(label="Error Message", field_name="ErrorMessage", wrap_text=True),
)

_SELL_LINE_COLUMN = ColumnSpec(label="Sell Line", field_name="SellLine")
_SELL_LINE_LINK_COLUMN = ColumnSpec(
    label="Sell Line",
    field_name="SellLineId",
    type="url",
    link_label_field="SellLine",
)
_CAMPAIGN_ID_COLUMN = ColumnSpec(label="SF CAMPAIGN ID", field_name="campaignID")

APAC_SCHEMA = RegionSchema(
    region=Region.APAC,
    key_field="SellLine",
    preview_first_column=_SELL_LINE_COLUMN,
    result_first_column=_SELL_LINE_LINK_COLUMN,
    preview_columns=(
        ColumnSpec(label="Clicks", field_name="Clicks", type="number"),
        ColumnSpec(label="Views", field_name="Views", type="number"),
        ColumnSpec(label="Completed Views", field_name="CompletedViews", type="number"),
        ColumnSpec(label="Conversions", field_name="Conversions", type="number"),
        ColumnSpec(label="Impressions", field_name="Impressions", type="number"),
        ColumnSpec(label="Budget", field_name="Budget", type="number"),
        ColumnSpec(label="Cost", field_name="Cost", type="number"),
        ColumnSpec(label="Currency ISO Code", field_name="CurrencyISOCode"),
        ColumnSpec(label="DSP", field_name="DSP"),
    ),
    accepted_extensions=_BASE_EXTENSIONS,
    aggregation_policy=AggregationPolicy.REPLACE,
    template_label="Download Template",
    status_columns=_STATUS_COLUMNS,
)

EMEA_SCHEMA = RegionSchema(
    region=Region.EMEA,
    key_field="SellLine",
    preview_first_column=_SELL_LINE_COLUMN,
    result_first_column=_SELL_LINE_LINK_COLUMN,
    preview_columns=(
        ColumnSpec(label="Quantity", field_name="Quantity", type="number"),
        ColumnSpec(label="Planned Gross Budget", field_name="Budget", type="currency"),
        ColumnSpec(label="Costs", field_name="Cost", type="currency"),
    ),
    accepted_extensions=_BASE_EXTENSIONS,
    aggregation_policy=AggregationPolicy.REPLACE,
    template_label="Download Template",
    status_columns=_STATUS_COLUMNS,
)

NTAM_SCHEMA = RegionSchema(
    region=Region.NTAM,
    key_field="campaignID",
    preview_first_column=_CAMPAIGN_ID_COLUMN,
    result_first_column=ColumnSpec(
        label="Placement Schedule",
        field_name="placementMonthlySchId",
        type="url",
        link_label_field="campaignID",
    ),
    # Kept visible in results when no placement record could be linked.
    secondary_key_column=_CAMPAIGN_ID_COLUMN,
    preview_columns=(
        ColumnSpec(label="Actualized Billable Units", field_name="billableUnits", type="number"),
        ColumnSpec(label="Actualized Billable Spend", field_name="billableSpend", type="currency"),
        ColumnSpec(label="Actualized Payable Units", field_name="payableUnits", type="number"),
        ColumnSpec(label="Actualized Payable Spend", field_name="payableSpend", type="currency"),
    ),
    accepted_extensions=(*_BASE_EXTENSIONS, ".xlsm"),
    aggregation_policy=AggregationPolicy.ACCUMULATE_BY_KEY,
    template_label="Download Sample File",
    status_columns=_STATUS_COLUMNS,
)

_SCHEMAS_BY_REGION: dict[str, RegionSchema] = {
    Region.APAC: APAC_SCHEMA,
    Region.EMEA: EMEA_SCHEMA,
    Region.NTAM: NTAM_SCHEMA,
}


def schema_for(region: str | None) -> RegionSchema:
    """
    Return the schema for ``region``; unrecognized regions fall back to APAC.
    """

    normalized = (region or "").strip().upper()
    return _SCHEMAS_BY_REGION.get(normalized, APAC_SCHEMA)


def is_known_region(region: str | None) -> bool:
    return (region or "").strip().upper() in _SCHEMAS_BY_REGION


def region_options() -> list[dict[str, str]]:
    return [{"label": region, "value": region} for region in Region.ALL]
