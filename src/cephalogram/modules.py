"""
Module Views over a DICOM Attribute Dictionary

A cephalogram record owns exactly one pydicom Dataset. The classes in this
module are thin, typed projections over that shared dataset, grouped the way
the DX Image IOD groups its modules. They hold no state of their own: two
views over the same dataset always agree.

Conventions:
- Reading an absent attribute returns None
- Assigning None removes the attribute
- Dates are datetime.date, timestamps datetime.datetime
- Decimal strings (DS) are floats, multi-valued DS are tuples of floats
- Code sequences are CodedConcept values
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence as SequenceType, Tuple

from pydicom.dataset import Dataset
from pydicom.sequence import Sequence
from pydicom.valuerep import DSfloat

from .codes import CodedConcept, code_sequence

DA_FORMAT = "%Y%m%d"
TM_FORMAT = "%H%M%S"


# ═══════════════════════════════════════════════════════════════════════════════
# VALUE CONVERSION
# ═══════════════════════════════════════════════════════════════════════════════

def to_ds(value: float) -> DSfloat:
    """Decimal string value that always fits the 16 character DS limit."""
    return DSfloat(value, auto_format=True)


def _put(ds: Dataset, keyword: str, value: Any) -> None:
    if value is None:
        if keyword in ds:
            delattr(ds, keyword)
        return
    setattr(ds, keyword, value)


def _parse_da(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:8], DA_FORMAT).date()


def _parse_tm(value: Any) -> Tuple[int, int, int]:
    text = str(value or "").split(".")[0]
    text = text.ljust(6, "0")
    return int(text[0:2]), int(text[2:4]), int(text[4:6])


# ═══════════════════════════════════════════════════════════════════════════════
# PROPERTY FACTORIES
# ═══════════════════════════════════════════════════════════════════════════════

def _attribute(keyword: str) -> property:
    def fget(self):
        return self.dataset.get(keyword)

    def fset(self, value):
        _put(self.dataset, keyword, value)

    return property(fget, fset, doc=f"{keyword} as stored")


def _date_attribute(keyword: str) -> property:
    def fget(self) -> Optional[date]:
        return _parse_da(self.dataset.get(keyword))

    def fset(self, value: Optional[date]):
        _put(self.dataset, keyword, value.strftime(DA_FORMAT) if value is not None else None)

    return property(fget, fset, doc=f"{keyword} as datetime.date")


def _datetime_attribute(date_keyword: str, time_keyword: str) -> property:
    def fget(self) -> Optional[datetime]:
        day = _parse_da(self.dataset.get(date_keyword))
        if day is None:
            return None
        hour, minute, second = _parse_tm(self.dataset.get(time_keyword))
        return datetime(day.year, day.month, day.day, hour, minute, second)

    def fset(self, value: Optional[datetime]):
        if value is None:
            _put(self.dataset, date_keyword, None)
            _put(self.dataset, time_keyword, None)
            return
        _put(self.dataset, date_keyword, value.strftime(DA_FORMAT))
        _put(self.dataset, time_keyword, value.strftime(TM_FORMAT))

    return property(fget, fset, doc=f"{date_keyword} + {time_keyword} as datetime")


def _float_attribute(keyword: str) -> property:
    def fget(self) -> Optional[float]:
        value = self.dataset.get(keyword)
        return float(value) if value is not None and value != "" else None

    def fset(self, value: Optional[float]):
        _put(self.dataset, keyword, to_ds(value) if value is not None else None)

    return property(fget, fset, doc=f"{keyword} as float")


def _floats_attribute(keyword: str) -> property:
    def fget(self) -> Optional[Tuple[float, ...]]:
        value = self.dataset.get(keyword)
        if value is None or value == "":
            return None
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            return (float(value),)
        return tuple(float(v) for v in value)

    def fset(self, value: Optional[SequenceType[float]]):
        _put(self.dataset, keyword, [to_ds(v) for v in value] if value is not None else None)

    return property(fget, fset, doc=f"{keyword} as tuple of floats")


def _int_attribute(keyword: str) -> property:
    def fget(self) -> Optional[int]:
        value = self.dataset.get(keyword)
        return int(value) if value is not None and value != "" else None

    def fset(self, value: Optional[int]):
        _put(self.dataset, keyword, int(value) if value is not None else None)

    return property(fget, fset, doc=f"{keyword} as int")


def _code_attribute(keyword: str) -> property:
    def fget(self) -> Optional[CodedConcept]:
        sequence = self.dataset.get(keyword)
        if not sequence:
            return None
        return CodedConcept.from_dataset(sequence[0])

    def fset(self, value: Optional[CodedConcept]):
        _put(self.dataset, keyword, code_sequence(value) if value is not None else None)

    return property(fget, fset, doc=f"{keyword} as CodedConcept")


def _sequence_attribute(keyword: str) -> property:
    def fget(self) -> List[Dataset]:
        return list(self.dataset.get(keyword) or [])

    def fset(self, items: Optional[Iterable[Dataset]]):
        _put(self.dataset, keyword, Sequence(list(items)) if items is not None else None)

    return property(fget, fset, doc=f"{keyword} items")


class ModuleView:
    """Borrowed view onto a dataset owned by someone else."""

    def __init__(self, dataset: Dataset):
        self.dataset = dataset


# ═══════════════════════════════════════════════════════════════════════════════
# MODULES
# ═══════════════════════════════════════════════════════════════════════════════

class SOPCommonModule(ModuleView):
    sop_class_uid = _attribute("SOPClassUID")
    sop_instance_uid = _attribute("SOPInstanceUID")
    specific_character_set = _attribute("SpecificCharacterSet")


class PatientModule(ModuleView):
    patient_name = _attribute("PatientName")
    patient_id = _attribute("PatientID")
    patient_birth_date = _date_attribute("PatientBirthDate")
    patient_sex = _attribute("PatientSex")
    patient_age = _attribute("PatientAge")
    ethnic_group = _attribute("EthnicGroup")


class GeneralStudyModule(ModuleView):
    study_instance_uid = _attribute("StudyInstanceUID")
    study_datetime = _datetime_attribute("StudyDate", "StudyTime")
    referring_physicians_name = _attribute("ReferringPhysicianName")
    study_id = _attribute("StudyID")
    accession_number = _attribute("AccessionNumber")
    study_description = _attribute("StudyDescription")


class DXSeriesModule(ModuleView):
    modality = _attribute("Modality")
    series_instance_uid = _attribute("SeriesInstanceUID")
    series_number = _attribute("SeriesNumber")
    series_datetime = _datetime_attribute("SeriesDate", "SeriesTime")
    series_description = _attribute("SeriesDescription")
    presentation_intent_type = _attribute("PresentationIntentType")


class DXImageModule(ModuleView):
    """DX Image, General Image and Image Pixel attributes."""

    image_type = _attribute("ImageType")
    instance_number = _attribute("InstanceNumber")
    patient_orientation = _attribute("PatientOrientation")
    image_orientation_patient = _floats_attribute("ImageOrientationPatient")
    burned_in_annotation = _attribute("BurnedInAnnotation")

    samples_per_pixel = _int_attribute("SamplesPerPixel")
    photometric_interpretation = _attribute("PhotometricInterpretation")
    rows = _int_attribute("Rows")
    columns = _int_attribute("Columns")
    bits_allocated = _int_attribute("BitsAllocated")
    bits_stored = _int_attribute("BitsStored")
    high_bit = _int_attribute("HighBit")
    pixel_representation = _int_attribute("PixelRepresentation")

    referenced_images = _sequence_attribute("ReferencedImageSequence")
    referenced_instances = _sequence_attribute("ReferencedInstanceSequence")


class DXDetectorModule(ModuleView):
    imager_pixel_spacing = _floats_attribute("ImagerPixelSpacing")
    pixel_spacing = _floats_attribute("PixelSpacing")


class DXPositioningModule(ModuleView):
    positioner_type = _attribute("PositionerType")
    table_type = _attribute("TableType")
    patient_orientation_code = _code_attribute("PatientOrientationCodeSequence")
    view_code = _code_attribute("ViewCodeSequence")
    positioner_primary_angle = _float_attribute("PositionerPrimaryAngle")
    positioner_secondary_angle = _float_attribute("PositionerSecondaryAngle")
    distance_source_to_detector = _float_attribute("DistanceSourceToDetector")
    distance_source_to_patient = _float_attribute("DistanceSourceToPatient")
    estimated_radiographic_magnification_factor = _float_attribute(
        "EstimatedRadiographicMagnificationFactor"
    )


class DXAnatomyImagedModule(ModuleView):
    image_laterality = _attribute("ImageLaterality")
    anatomic_region = _code_attribute("AnatomicRegionSequence")
