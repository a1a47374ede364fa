"""
Advisory Validation for Cephalogram Records

Runs a fixed battery of structural checks and collects findings. Validation
is a report, not a gate: findings never stop a record from being written
unless the caller explicitly asks for strict behaviour (raise_if_invalid).

Checks:
- BitsAllocated >= 16
- BitsStored >= 12
- Every PixelSpacing axis <= 25.4 / 128 mm

The only mutation performed is the removal of Red/Green/Blue palette colour
lookup tables, which have no place in a monochrome image.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydicom.datadict import tag_for_keyword
from pydicom.dataset import Dataset

from .geometry import maximum_pixel_spacing

logger = logging.getLogger(__name__)

MINIMUM_BITS_ALLOCATED = 16
MINIMUM_BITS_STORED = 12

PALETTE_KEYWORDS = (
    "RedPaletteColorLookupTableDescriptor",
    "RedPaletteColorLookupTableData",
    "GreenPaletteColorLookupTableDescriptor",
    "GreenPaletteColorLookupTableData",
    "BluePaletteColorLookupTableDescriptor",
    "BluePaletteColorLookupTableData",
)


class ValidationError(ValueError):
    """Raised in strict mode when a record has validation findings."""

    def __init__(self, result: "ValidationResult"):
        super().__init__(result.summary())
        self.result = result


@dataclass(frozen=True)
class ValidationFinding:
    """One invalid value."""

    keyword: str
    tag: Optional[int]
    value: Any
    message: str

    def __str__(self) -> str:
        tag = f"({self.tag >> 16:04X},{self.tag & 0xFFFF:04X}) " if self.tag is not None else ""
        return f"{tag}{self.keyword}={self.value!r}: {self.message}"


@dataclass
class ValidationResult:
    """Accumulator for advisory findings."""

    findings: List[ValidationFinding] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.findings

    def log_invalid_value(self, keyword: str, dataset: Dataset, message: str) -> None:
        finding = ValidationFinding(
            keyword=keyword,
            tag=tag_for_keyword(keyword),
            value=dataset.get(keyword),
            message=message,
        )
        self.findings.append(finding)
        logger.warning("Invalid value: %s", finding)

    def summary(self) -> str:
        if self.is_valid:
            return "No validation findings"
        lines = [f"{len(self.findings)} validation finding(s):"]
        lines.extend(f"  - {finding}" for finding in self.findings)
        return "\n".join(lines)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def strip_palette_lookup_tables(dataset: Dataset, result: ValidationResult) -> None:
    for keyword in PALETTE_KEYWORDS:
        if keyword in dataset:
            delattr(dataset, keyword)
            result.removed.append(keyword)
            logger.info("Removed %s from monochrome image", keyword)


def validate_pixel_spacing(dataset: Dataset) -> bool:
    spacing = dataset.get("PixelSpacing")
    if not spacing:
        return False
    ceiling = maximum_pixel_spacing()
    return all(float(v) <= ceiling for v in spacing)


def validate_dataset(
    dataset: Dataset, result: Optional[ValidationResult] = None
) -> ValidationResult:
    """
    Run all checks against a prepared cephalogram dataset.

    Args:
        dataset: The record's attribute dictionary
        result: Accumulator to append to. A new one is created if None.

    Returns:
        The accumulator, with any findings appended
    """
    if result is None:
        result = ValidationResult()

    if _as_int(dataset.get("BitsAllocated")) < MINIMUM_BITS_ALLOCATED:
        result.log_invalid_value(
            "BitsAllocated", dataset, f"must be at least {MINIMUM_BITS_ALLOCATED}"
        )
    if _as_int(dataset.get("BitsStored")) < MINIMUM_BITS_STORED:
        result.log_invalid_value(
            "BitsStored", dataset, f"must be at least {MINIMUM_BITS_STORED}"
        )
    if not validate_pixel_spacing(dataset):
        result.log_invalid_value(
            "PixelSpacing",
            dataset,
            f"must be present and at most {maximum_pixel_spacing():.4f} mm",
        )

    strip_palette_lookup_tables(dataset, result)
    return result


def raise_if_invalid(result: ValidationResult) -> None:
    """Raise ValidationError if the result has findings."""
    if not result.is_valid:
        raise ValidationError(result)
