"""
Cephalogram DICOM Module

Builds DICOM Digital X-Ray Image Storage - For Processing files from
digital cephalogram JPEGs and their .properties sidecars. The JPEG stream is
encapsulated as-is under the JPEG Baseline transfer syntax; pixels are never
decoded or re-encoded.
"""

from .codes import CodedConcept, make_code
from .config import ConfigResolution, ConfigurationError, resolve_configuration
from .geometry import GeometrySpec, OrientationSpec, maximum_pixel_spacing
from .pairing import link_biplane_pair, reference_fiducial_set
from .record import CephalogramRecord
from .validation import ValidationError, ValidationResult
from .writer import IncompleteRecordError

__version__ = "1.0.0"
__all__ = [
    "CephalogramRecord",
    "CodedConcept",
    "make_code",
    "ConfigResolution",
    "ConfigurationError",
    "resolve_configuration",
    "GeometrySpec",
    "OrientationSpec",
    "maximum_pixel_spacing",
    "link_biplane_pair",
    "reference_fiducial_set",
    "ValidationError",
    "ValidationResult",
    "IncompleteRecordError",
]
