"""
Attribute Mapper

Translates the free-form sidecar configuration of a cephalogram into typed
DICOM attributes on its record.

Failure policy: every field is attempted on its own. A missing or malformed
value logs a warning, leaves the documented default (usually: attribute
unset) and mapping carries on with the next field. Nothing raised while
mapping one field can reach the caller.

| key                                    | effect                                   |
|----------------------------------------|------------------------------------------|
| patientName, patientID, ethnicGroup,   | copied verbatim                          |
| patientSex, patientAge                 |                                          |
| patientDOB                             | yyyy-MM-dd, unset on failure             |
| studyDate + studyTime                  | yyyy-MM-dd HH:mm, now on failure         |
| referringPhysician, studyID,           | copied verbatim                          |
| accessionNumber, seriesNumber,         |                                          |
| instanceNumber                         |                                          |
| patientOrientationRow/Column           | PatientOrientation + direction cosines   |
| sid, sod                               | distances in mm, both unset on failure   |
| mag                                    | percentage, overrides SID/SOD derivation |
| cephalogramType                        | "PA" or "L" canonical shortcut           |
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Mapping, Optional

from dateutil.parser import isoparser

from .geometry import (
    CEPHALOGRAM_TYPES,
    GeometrySpec,
    apply_geometry,
    resolve_direction_cosines,
)

if TYPE_CHECKING:
    from .record import CephalogramRecord

logger = logging.getLogger(__name__)

_DATE_PARSER = isoparser()
_DATETIME_PARSER = isoparser(sep=" ")

DATE_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2}")
TIME_SHAPE = re.compile(r"\d{2}:\d{2}")

# (module view attribute on the record, view property, configuration key)
PATIENT_FIELDS = (
    ("patient", "patient_name", "patientName"),
    ("patient", "patient_id", "patientID"),
    ("patient", "ethnic_group", "ethnicGroup"),
    ("patient", "patient_age", "patientAge"),
    ("patient", "patient_sex", "patientSex"),
)

STUDY_FIELDS = (
    ("study", "referring_physicians_name", "referringPhysician"),
    ("study", "study_id", "studyID"),
    ("study", "accession_number", "accessionNumber"),
    ("series", "series_number", "seriesNumber"),
    ("image", "instance_number", "instanceNumber"),
)


def parse_decimal(value: Optional[str]) -> float:
    """Parse a finite decimal. Raises ValueError otherwise."""
    if value is None:
        raise ValueError("value is missing")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def parse_birth_date(value: Optional[str]) -> date:
    """Parse yyyy-MM-dd. Partial or basic-format dates are rejected."""
    if value is None:
        raise ValueError("patientDOB is missing")
    value = value.strip()
    if not DATE_SHAPE.fullmatch(value):
        raise ValueError(f"expected yyyy-MM-dd, got {value!r}")
    return _DATE_PARSER.parse_isodate(value)


def parse_study_datetime(study_date: Optional[str], study_time: Optional[str]) -> datetime:
    """Parse yyyy-MM-dd and HH:mm into one timestamp."""
    if study_date is None or study_time is None:
        raise ValueError("studyDate and studyTime are both required")
    study_date, study_time = study_date.strip(), study_time.strip()
    if not DATE_SHAPE.fullmatch(study_date) or not TIME_SHAPE.fullmatch(study_time):
        raise ValueError(f"expected yyyy-MM-dd HH:mm, got {study_date!r} {study_time!r}")
    return _DATETIME_PARSER.isoparse(f"{study_date} {study_time}")



# ═══════════════════════════════════════════════════════════════════════════════
# FIELD MAPPERS
# ═══════════════════════════════════════════════════════════════════════════════

def copy_verbatim(record: "CephalogramRecord", fields, properties: Mapping[str, str]) -> None:
    for view_name, attribute, key in fields:
        value = properties.get(key)
        if value is None:
            logger.debug("%s not configured", key)
            continue
        try:
            setattr(getattr(record, view_name), attribute, value)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Could not set %s from %s=%r: %s", attribute, key, value, e)


def map_birth_date(record: "CephalogramRecord", properties: Mapping[str, str]) -> None:
    value = properties.get("patientDOB")
    try:
        birth_date = parse_birth_date(value)
    except ValueError as e:
        logger.warning("Could not parse DOB %r correctly (%s). Setting to null.", value, e)
        birth_date = None
    record.patient.patient_birth_date = birth_date


def map_study_datetime(record: "CephalogramRecord", properties: Mapping[str, str]) -> None:
    study_date = properties.get("studyDate")
    study_time = properties.get("studyTime")
    try:
        study_datetime = parse_study_datetime(study_date, study_time)
    except ValueError as e:
        logger.warning(
            "Could not parse Study Date Time %r %r correctly (%s). Using current date time.",
            study_date, study_time, e,
        )
        study_datetime = datetime.now()
    record.study.study_datetime = study_datetime
    # Series timestamp always follows the study timestamp.
    record.series.series_datetime = record.study.study_datetime


def map_patient_orientation(record: "CephalogramRecord", properties: Mapping[str, str]) -> None:
    row = properties.get("patientOrientationRow")
    column = properties.get("patientOrientationColumn")
    try:
        record.image.patient_orientation = [row or "", column or ""]
    except (ValueError, TypeError) as e:
        logger.warning("Could not set PatientOrientation %r\\%r: %s", row, column, e)

    cosines = resolve_direction_cosines(row, column)
    if cosines is not None:
        record.image.image_orientation_patient = cosines


def map_geometry(record: "CephalogramRecord", properties: Mapping[str, str]) -> Optional[GeometrySpec]:
    """
    Map sid, sod and mag.

    SID/SOD are recorded together or not at all. An explicit mag is applied
    after them, so it is the magnification that ends up in the record.
    """
    geometry: Optional[GeometrySpec] = None
    try:
        geometry = GeometrySpec.from_distances(
            parse_decimal(properties.get("sid")),
            parse_decimal(properties.get("sod")),
        )
    except (ValueError, ZeroDivisionError):
        logger.warning("Could not parse sid and sod. Please set proper sid= and sod= as decimal.")

    mag = properties.get("mag")
    if mag is not None and mag.strip() != "":
        try:
            geometry = (geometry or GeometrySpec()).with_magnification_percent(parse_decimal(mag))
        except ValueError:
            logger.warning("Could not parse mag=%r as a decimal percentage; ignoring it.", mag)

    if geometry is not None:
        apply_geometry(record.positioning, geometry)
    return geometry


def map_cephalogram_type(record: "CephalogramRecord", properties: Mapping[str, str]) -> None:
    spec = CEPHALOGRAM_TYPES.get(properties.get("cephalogramType"))
    if spec is not None:
        record.apply_orientation(spec)


def map_properties(record: "CephalogramRecord", properties: Mapping[str, str]) -> None:
    """
    Populate patient, study, series and image attributes from configuration.

    Args:
        record: The cephalogram record to populate
        properties: Sidecar configuration (string keys and values)
    """
    copy_verbatim(record, PATIENT_FIELDS, properties)
    map_birth_date(record, properties)
    map_study_datetime(record, properties)
    copy_verbatim(record, STUDY_FIELDS, properties)
    map_patient_orientation(record, properties)
    map_geometry(record, properties)
    map_cephalogram_type(record, properties)
