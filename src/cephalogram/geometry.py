"""
Geometry & Orientation Resolver

Derives the geometric attributes of a cephalogram from raw inputs:
- Canonical projection shortcuts (PA, AP, right lateral, left lateral)
- Direction cosines for the standard two-letter patient orientation pairs
- Source/detector/patient distances and radiographic magnification
- Pixel spacing from scanner resolution

Magnification policy: SID/SOD always derives a magnification factor, and an
explicitly supplied magnification percentage applied afterwards replaces it.
The explicit value is the one that reaches the record.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from . import codes
from .codes import CodedConcept
from .modules import DXPositioningModule, DXSeriesModule

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4

# Anything scanned below this resolution is too coarse for cephalometric measurement.
MINIMUM_ALLOWED_DPI = 128


# ═══════════════════════════════════════════════════════════════════════════════
# ORIENTATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrientationSpec:
    """Positioner angles and view code of one projection."""

    primary_angle: float
    secondary_angle: float
    view_code: CodedConcept
    series_description: Optional[str] = None


POSTERO_ANTERIOR = OrientationSpec(
    180, 0, codes.POSTERO_ANTERIOR_VIEW, "POSTERO-ANTERIOR CEPHALOGRAM"
)
ANTERO_POSTERIOR = OrientationSpec(0, 0, codes.ANTERO_POSTERIOR_VIEW)
RIGHT_LATERAL = OrientationSpec(-90, 0, codes.RIGHT_LATERAL_VIEW)
LEFT_LATERAL = OrientationSpec(90, 0, codes.LEFT_LATERAL_VIEW, "LATERAL CEPHALOGRAM")

# cephalogramType values understood by the configuration mapper
CEPHALOGRAM_TYPES: Dict[str, OrientationSpec] = {
    "PA": POSTERO_ANTERIOR,
    "L": LEFT_LATERAL,
}


def apply_orientation(
    positioning: DXPositioningModule,
    series: DXSeriesModule,
    spec: OrientationSpec,
) -> None:
    """
    Set primary/secondary angle and view code together.

    The series description is only touched when the projection carries one, so
    AP and right-lateral leave whatever description was there.
    """
    positioning.positioner_primary_angle = spec.primary_angle
    positioning.positioner_secondary_angle = spec.secondary_angle
    positioning.view_code = spec.view_code
    if spec.series_description is not None:
        series.series_description = spec.series_description


# Image Orientation (Patient) for each (row, column) Patient Orientation pair,
# in the LPS patient coordinate system.
DIRECTION_COSINES: Dict[Tuple[str, str], Tuple[float, ...]] = {
    ("A", "F"): (0.0, -1.0, 0.0, 0.0, 0.0, -1.0),
    ("P", "F"): (0.0, 1.0, 0.0, 0.0, 0.0, -1.0),
    ("L", "F"): (1.0, 0.0, 0.0, 0.0, 0.0, -1.0),
    ("R", "F"): (-1.0, 0.0, 0.0, 0.0, 0.0, -1.0),
    ("F", "P"): (0.0, 0.0, -1.0, 0.0, 1.0, 0.0),
}


def resolve_direction_cosines(
    row: Optional[str], column: Optional[str]
) -> Optional[Tuple[float, ...]]:
    """
    Look up the six direction cosines of a patient orientation pair.

    Args:
        row: Direction of the rows, e.g. "A"
        column: Direction of the columns, e.g. "F"

    Returns:
        Six floats, or None (logged) when the pair is not one of AF, PF, LF, RF, FP
    """
    cosines = DIRECTION_COSINES.get((row, column))
    if cosines is None:
        logger.error(
            "Cannot set image orientation for patient orientation %s\\%s", row, column
        )
    return cosines


# ═══════════════════════════════════════════════════════════════════════════════
# DISTANCES & MAGNIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GeometrySpec:
    """
    Acquisition geometry in mm.

    Distances are measured to the midsagittal plane for lateral cephalograms
    and to the transmeatal axis (ear rods) for PA cephalograms.
    """

    source_to_detector: Optional[float] = None
    source_to_patient: Optional[float] = None
    magnification_factor: Optional[float] = None

    @classmethod
    def from_distances(cls, sid: float, sod: float) -> "GeometrySpec":
        """Record SID and SOD and derive magnification as SID / SOD."""
        return cls(sid, sod, sid / sod)

    def with_magnification_percent(self, percent: float) -> "GeometrySpec":
        """Replace the magnification factor with an explicit percentage."""
        return replace(self, magnification_factor=percent / 100.0)


def apply_geometry(positioning: DXPositioningModule, geometry: GeometrySpec) -> None:
    if geometry.source_to_detector is not None:
        positioning.distance_source_to_detector = geometry.source_to_detector
    if geometry.source_to_patient is not None:
        positioning.distance_source_to_patient = geometry.source_to_patient
    if geometry.magnification_factor is not None:
        positioning.estimated_radiographic_magnification_factor = geometry.magnification_factor


# ═══════════════════════════════════════════════════════════════════════════════
# PIXEL SPACING
# ═══════════════════════════════════════════════════════════════════════════════

def pixel_spacing_from_dpi(dpi: float) -> float:
    """Distance in mm between adjacent pixels at the given resolution."""
    return MM_PER_INCH / dpi


def maximum_pixel_spacing() -> float:
    """
    Largest pixel spacing (mm) accepted for a cephalogram.

    Any larger spacing means the image resolution is insufficient for
    accurate measurement.
    """
    return pixel_spacing_from_dpi(MINIMUM_ALLOWED_DPI)
