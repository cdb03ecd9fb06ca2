"""
Regional workbook normalizers keyed by region.
"""

from __future__ import annotations

from actualization.domain.regions import Region
from actualization.normalizers.apac import ApacNormalizer
from actualization.normalizers.base import NormalizationResult, RegionNormalizer
from actualization.normalizers.emea import EmeaNormalizer
from actualization.normalizers.ntam import NtamNormalizer
from actualization.normalizers.workbook import Sheet, Workbook, normalize_header, read_workbook

_NORMALIZERS: dict[str, RegionNormalizer] = {
    Region.APAC: ApacNormalizer(),
    Region.EMEA: EmeaNormalizer(),
    Region.NTAM: NtamNormalizer(),
}


def get_normalizer(region: str | None) -> RegionNormalizer:
    """
    Return the region's normalizer; unrecognized regions use APAC.
    """

    return _NORMALIZERS.get((region or "").strip().upper(), _NORMALIZERS[Region.APAC])


def normalize(region: str | None, workbook: Workbook) -> NormalizationResult:
    return get_normalizer(region).normalize(workbook)


__all__ = [
    "ApacNormalizer",
    "EmeaNormalizer",
    "NormalizationResult",
    "NtamNormalizer",
    "RegionNormalizer",
    "Sheet",
    "Workbook",
    "get_normalizer",
    "normalize",
    "normalize_header",
    "read_workbook",
]
