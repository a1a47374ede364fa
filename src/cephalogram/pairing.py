"""
Biplane Pairing

A lateral and a postero-anterior cephalogram taken of the same patient in one
session form a biplane pair. Both images belong to the same study and each
references the other, so a viewer can open them side by side and a tracing
tool can combine landmarks from both projections.
"""

import logging
from typing import Iterable, Optional, Tuple

from .record import CephalogramRecord

logger = logging.getLogger(__name__)


def link_biplane_pair(
    first: CephalogramRecord,
    second: CephalogramRecord,
    study_uid: Optional[str] = None,
) -> Tuple[CephalogramRecord, CephalogramRecord]:
    """
    Put two cephalograms in one study and cross-reference them.

    Args:
        first: One image of the pair (usually the lateral)
        second: The other image of the pair (usually the PA)
        study_uid: Shared Study Instance UID. Defaults to the first record's,
            or a new one if it has none yet.

    Returns:
        (first, second), both updated in place
    """
    if first is second:
        raise ValueError("A cephalogram cannot be paired with itself")

    if study_uid is None:
        study_uid = first.study_uid or first.new_uid()
    first.study_uid = study_uid
    second.study_uid = study_uid

    first.set_referenced_image(second.uid)
    second.set_referenced_image(first.uid)

    logger.info(
        "Linked %s and %s as a biplane pair in study %s",
        first.image_path.name,
        second.image_path.name,
        study_uid,
    )
    return first, second


def reference_fiducial_set(records: Iterable[CephalogramRecord], uid: str) -> None:
    """Point every record at the Spatial Fiducials object with the given UID."""
    for record in records:
        record.set_referenced_fiducial_set(uid)
        logger.debug("%s references fiducial set %s", record.image_path.name, uid)
