"""
Coded Concepts for Cephalogram Records

Fixed (value, meaning, scheme[, version]) triples used for the anatomic
region, patient orientation, view and purpose-of-reference codes of a
DX cephalogram, plus the conversion to and from DICOM code sequence items.
"""

from dataclasses import dataclass
from typing import Optional

from pydicom.dataset import Dataset
from pydicom.sequence import Sequence


@dataclass(frozen=True)
class CodedConcept:
    """Immutable coded concept (Code Sequence Macro)."""

    value: str
    meaning: str
    scheme: str
    scheme_version: Optional[str] = None

    def to_dataset(self) -> Dataset:
        """Build a single code sequence item."""
        item = Dataset()
        item.CodeValue = self.value
        item.CodingSchemeDesignator = self.scheme
        if self.scheme_version is not None:
            item.CodingSchemeVersion = self.scheme_version
        item.CodeMeaning = self.meaning
        return item

    @classmethod
    def from_dataset(cls, item: Dataset) -> "CodedConcept":
        return cls(
            value=str(item.get("CodeValue", "")),
            meaning=str(item.get("CodeMeaning", "")),
            scheme=str(item.get("CodingSchemeDesignator", "")),
            scheme_version=item.get("CodingSchemeVersion"),
        )


def make_code(
    value: str,
    meaning: str,
    scheme: str,
    scheme_version: Optional[str] = None,
) -> CodedConcept:
    """
    Construct a coded concept.

    Args:
        value: Code Value (0008,0100)
        meaning: Code Meaning (0008,0104)
        scheme: Coding Scheme Designator (0008,0102)
        scheme_version: Coding Scheme Version (0008,0103), optional

    Returns:
        Frozen CodedConcept
    """
    return CodedConcept(value, meaning, scheme, scheme_version)


def code_sequence(concept: CodedConcept) -> Sequence:
    """Wrap a coded concept into a one-item sequence."""
    return Sequence([concept.to_dataset()])


# ═══════════════════════════════════════════════════════════════════════════════
# FIXED CODES
# ═══════════════════════════════════════════════════════════════════════════════

# Patient Orientation Code Sequence (0054,0410)
ERECT = make_code("F-10440", "ERECT", "SNM3")

# Anatomic Region Sequence (0008,2218)
HEAD = make_code("T-D1100", "Head, NOS", "SNM3")

# View Code Sequence (0054,0220)
POSTERO_ANTERIOR_VIEW = make_code("R-10214", "postero-anterior", "SNM3")
ANTERO_POSTERIOR_VIEW = make_code("R-10206", "antero-posterior", "SNM3")
RIGHT_LATERAL_VIEW = make_code("R-10232", "right lateral", "SNM3")
LEFT_LATERAL_VIEW = make_code("R-10236", "left lateral", "SNM3")

# Purpose of Reference Code Sequence (0040,A170)
OTHER_IMAGE_OF_BIPLANE_PAIR = make_code("121314", "Other image of biplane pair", "DCM")
FIDUCIAL_MARK = make_code("112171", "Fiducial mark", "DCM", "01")
