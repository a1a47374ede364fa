"""
Cephalogram Record

One CephalogramRecord per physical cephalogram image. The record owns:
- the path of the source JPEG
- the resolved sidecar configuration
- a single pydicom Dataset (the attribute dictionary)

Module views (patient, study, series, image, detector, positioning, anatomy,
sop_common) are borrowed projections over that dataset.

Lifecycle:
    record = CephalogramRecord.from_files("B1893F12.jpg")
    record.write()               # prepare -> validate (advisory) -> serialize

The written .dcm file is the durable artefact; the in-memory record is not
meant to outlive it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Optional, Union

from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import (
    PYDICOM_IMPLEMENTATION_UID,
    DigitalXRayImageStorageForProcessing,
    JPEGBaseline8Bit,
    SpatialFiducialsStorage,
    generate_uid,
)

from . import codes
from .config import raise_if_failed, resolve_configuration
from .geometry import (
    ANTERO_POSTERIOR,
    LEFT_LATERAL,
    POSTERO_ANTERIOR,
    RIGHT_LATERAL,
    GeometrySpec,
    OrientationSpec,
    apply_geometry,
    apply_orientation,
    maximum_pixel_spacing,
)
from .mapper import map_properties, parse_decimal
from .modules import (
    DXAnatomyImagedModule,
    DXDetectorModule,
    DXImageModule,
    DXPositioningModule,
    DXSeriesModule,
    GeneralStudyModule,
    PatientModule,
    SOPCommonModule,
)
from .probe import PixelGeometry, probe_image_header
from .validation import ValidationResult, raise_if_invalid, validate_dataset
from .writer import require_pixel_geometry, write_encapsulated

logger = logging.getLogger(__name__)

# Latin alphabet No. 1
DEFAULT_CHARSET = "ISO_IR 100"

TRANSFER_SYNTAX = JPEGBaseline8Bit

DCM_SUFFIX = ".dcm"

PRIMARY_IMAGE_TYPE = ["ORIGINAL", "PRIMARY", ""]
SECONDARY_IMAGE_TYPE = ["ORIGINAL", "SECONDARY", ""]

UIDFactory = Callable[[], str]


def _require_image(image_path: Path) -> None:
    if not image_path.exists():
        raise FileNotFoundError(f"input file not found: {image_path}")


class CephalogramRecord:
    """A digital cephalogram as a DX Image For Processing."""

    def __init__(
        self,
        image_path: Union[str, Path],
        properties: Optional[Mapping[str, str]] = None,
        *,
        uid_factory: UIDFactory = generate_uid,
    ):
        """
        Args:
            image_path: The cephalogram JPEG. Must exist.
            properties: Resolved sidecar configuration
            uid_factory: Returns a fresh unique identifier on every call
        """
        self.image_path = Path(image_path)
        _require_image(self.image_path)

        self.properties = dict(properties or {})
        self.dataset = Dataset()
        self.pixel_geometry: Optional[PixelGeometry] = None
        self.geometry: Optional[GeometrySpec] = None
        self.validation_result: Optional[ValidationResult] = None
        self._uid_factory = uid_factory
        self._prepared = False

        self.init_fixed_attributes()

    @classmethod
    def from_files(
        cls,
        image_path: Union[str, Path],
        config_path: Optional[Union[str, Path]] = None,
        **kwargs,
    ) -> "CephalogramRecord":
        """
        Build a record from an image and its .properties file.

        Raises:
            FileNotFoundError: image does not exist
            ConfigurationError: configuration cannot be located or parsed
        """
        image_path = Path(image_path)
        _require_image(image_path)
        resolution = resolve_configuration(image_path, config_path)
        raise_if_failed(resolution)
        return cls(image_path, resolution.properties, **kwargs)

    # ═══════════════════════════════════════════════════════════════════════════
    # MODULE VIEWS
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def sop_common(self) -> SOPCommonModule:
        return SOPCommonModule(self.dataset)

    @property
    def patient(self) -> PatientModule:
        return PatientModule(self.dataset)

    @property
    def study(self) -> GeneralStudyModule:
        return GeneralStudyModule(self.dataset)

    @property
    def series(self) -> DXSeriesModule:
        return DXSeriesModule(self.dataset)

    @property
    def image(self) -> DXImageModule:
        return DXImageModule(self.dataset)

    @property
    def detector(self) -> DXDetectorModule:
        return DXDetectorModule(self.dataset)

    @property
    def positioning(self) -> DXPositioningModule:
        return DXPositioningModule(self.dataset)

    @property
    def anatomy(self) -> DXAnatomyImagedModule:
        return DXAnatomyImagedModule(self.dataset)

    # ═══════════════════════════════════════════════════════════════════════════
    # FIXED ATTRIBUTES
    # ═══════════════════════════════════════════════════════════════════════════

    def new_uid(self) -> str:
        return self._uid_factory()

    def init_fixed_attributes(self) -> None:
        """Set the attributes that do not depend on this particular image."""
        self.sop_common.sop_class_uid = DigitalXRayImageStorageForProcessing
        self.sop_common.sop_instance_uid = self.new_uid()

        self.series.modality = "DX"
        if self.series_uid is None:
            self.series_uid = self.new_uid()
        # Replaced by the study timestamp during mapping.
        self.series.series_datetime = datetime.now()
        self.series.presentation_intent_type = "FOR PROCESSING"

        self.image.samples_per_pixel = 1
        self.set_primary_image_type()

        self.positioning.positioner_type = "CEPHALOSTAT"
        self.positioning.patient_orientation_code = codes.ERECT
        self.positioning.table_type = "FIXED"

        self.anatomy.image_laterality = "U"
        self.anatomy.anatomic_region = codes.HEAD

    def set_primary_image_type(self) -> None:
        """ORIGINAL\\PRIMARY, the default."""
        self.image.image_type = list(PRIMARY_IMAGE_TYPE)

    def set_secondary_image_type(self) -> None:
        """ORIGINAL\\SECONDARY, for cephalograms that do not come from the source."""
        self.image.image_type = list(SECONDARY_IMAGE_TYPE)

    # ═══════════════════════════════════════════════════════════════════════════
    # IDENTIFIERS & DESCRIPTORS
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def uid(self) -> Optional[str]:
        """SOP Instance UID of this image."""
        return self.sop_common.sop_instance_uid

    @property
    def study_uid(self) -> Optional[str]:
        return self.study.study_instance_uid

    @study_uid.setter
    def study_uid(self, uid: Optional[str]) -> None:
        self.study.study_instance_uid = uid

    @property
    def series_uid(self) -> Optional[str]:
        return self.series.series_instance_uid

    @series_uid.setter
    def series_uid(self, uid: Optional[str]) -> None:
        self.series.series_instance_uid = uid

    @property
    def study_description(self) -> Optional[str]:
        return self.study.study_description

    @study_description.setter
    def study_description(self, description: Optional[str]) -> None:
        self.study.study_description = description

    def set_burned_in_annotation(self, annotations: bool) -> None:
        """Whether the image shows enough burned in text to identify the patient."""
        self.image.burned_in_annotation = "YES" if annotations else "NO"

    # ═══════════════════════════════════════════════════════════════════════════
    # GEOMETRY & ORIENTATION
    # ═══════════════════════════════════════════════════════════════════════════

    def apply_orientation(self, spec: OrientationSpec) -> None:
        apply_orientation(self.positioning, self.series, spec)

    def set_postero_anterior(self) -> None:
        """Primary angle 180, secondary 0, view SNM3 R-10214 postero-anterior."""
        self.apply_orientation(POSTERO_ANTERIOR)

    def set_antero_posterior(self) -> None:
        """Primary angle 0, secondary 0, view SNM3 R-10206 antero-posterior."""
        self.apply_orientation(ANTERO_POSTERIOR)

    def set_right_lateral(self) -> None:
        """Primary angle -90, secondary 0, view SNM3 R-10232 right lateral."""
        self.apply_orientation(RIGHT_LATERAL)

    def set_left_lateral(self) -> None:
        """Primary angle +90, secondary 0, view SNM3 R-10236 left lateral."""
        self.apply_orientation(LEFT_LATERAL)

    def set_distances(self, sid: float, sod: float) -> GeometrySpec:
        """Record SID and SOD in mm and derive magnification as SID / SOD."""
        self.geometry = GeometrySpec.from_distances(sid, sod)
        apply_geometry(self.positioning, self.geometry)
        return self.geometry

    def set_distance(self, sid: Optional[str], sod: Optional[str]) -> None:
        """
        Set source-to-detector and source-to-patient distances from strings.

        Distances are measured from the midsagittal plane for lateral cephs and
        the transmeatal axis (ear rods) for PA cephs. Nothing happens unless
        both are given.
        """
        if sid is not None and sod is not None:
            self.set_distances(parse_decimal(sid), parse_decimal(sod))

    def set_magnification(self, percent: Optional[str]) -> None:
        """Set radiographic magnification from a percentage string, e.g. "110"."""
        if percent is None or percent == "":
            return
        self.geometry = (self.geometry or GeometrySpec()).with_magnification_percent(
            parse_decimal(percent)
        )
        apply_geometry(self.positioning, self.geometry)

    @staticmethod
    def maximum_pixel_spacing() -> float:
        return maximum_pixel_spacing()

    # ═══════════════════════════════════════════════════════════════════════════
    # REFERENCES
    # ═══════════════════════════════════════════════════════════════════════════

    def set_referenced_image(self, uid: str) -> None:
        """Reference the other image of a lateral/PA cephalogram pair."""
        item = Dataset()
        item.ReferencedSOPClassUID = DigitalXRayImageStorageForProcessing
        item.ReferencedSOPInstanceUID = uid
        item.PurposeOfReferenceCodeSequence = codes.code_sequence(
            codes.OTHER_IMAGE_OF_BIPLANE_PAIR
        )
        self.image.referenced_images = [item]

    def set_referenced_fiducial_set(self, uid: str) -> None:
        """Reference the Spatial Fiducials object holding this image's markers."""
        item = Dataset()
        item.ReferencedSOPClassUID = SpatialFiducialsStorage
        item.ReferencedSOPInstanceUID = uid
        item.PurposeOfReferenceCodeSequence = codes.code_sequence(codes.FIDUCIAL_MARK)
        self.image.referenced_instances = [item]

    @property
    def referenced_fiducial_set(self) -> Optional[str]:
        instances = self.image.referenced_instances
        if not instances:
            return None
        return instances[0].ReferencedSOPInstanceUID

    # ═══════════════════════════════════════════════════════════════════════════
    # PREPARE / VALIDATE / WRITE
    # ═══════════════════════════════════════════════════════════════════════════

    def apply_pixel_geometry(self, pixel_geometry: PixelGeometry) -> None:
        image = self.image
        image.rows = pixel_geometry.rows
        image.columns = pixel_geometry.columns
        image.samples_per_pixel = 1
        image.photometric_interpretation = "MONOCHROME2"
        image.bits_allocated = pixel_geometry.bits_allocated
        image.bits_stored = pixel_geometry.bits_stored
        image.high_bit = pixel_geometry.high_bit
        image.pixel_representation = 0

        if pixel_geometry.pixel_spacing is not None:
            self.detector.imager_pixel_spacing = pixel_geometry.pixel_spacing
            self.detector.pixel_spacing = pixel_geometry.pixel_spacing
        self.pixel_geometry = pixel_geometry

    def probe_image(self) -> Optional[PixelGeometry]:
        """Read the image header; leaves pixel attributes unset if unsupported."""
        header = probe_image_header(self.image_path)
        if header is None:
            return None
        pixel_geometry = PixelGeometry.from_header(header)
        self.apply_pixel_geometry(pixel_geometry)
        return pixel_geometry

    def ensure_uid(self, keyword: str) -> str:
        uid = self.dataset.get(keyword)
        if not uid:
            uid = self.new_uid()
            setattr(self.dataset, keyword, uid)
        return str(uid)

    def init_file_meta(self) -> None:
        meta = FileMetaDataset()
        meta.MediaStorageSOPClassUID = self.sop_common.sop_class_uid
        meta.MediaStorageSOPInstanceUID = self.uid
        meta.TransferSyntaxUID = TRANSFER_SYNTAX
        meta.ImplementationClassUID = PYDICOM_IMPLEMENTATION_UID
        self.dataset.file_meta = meta

    def prepare(self) -> None:
        """Set the attributes specific to this cephalogram. Runs once."""
        if self._prepared:
            return
        map_properties(self, self.properties)
        self.probe_image()

        self.ensure_uid("StudyInstanceUID")
        self.ensure_uid("SeriesInstanceUID")
        self.ensure_uid("SOPInstanceUID")

        self.sop_common.specific_character_set = DEFAULT_CHARSET
        self.init_file_meta()
        self._prepared = True

    def validate(self, result: Optional[ValidationResult] = None) -> ValidationResult:
        """Advisory checks; see cephalogram.validation."""
        return validate_dataset(self.dataset, result)

    @property
    def dcm_file_name(self) -> str:
        """Image file name with its extension replaced by .dcm."""
        return self.image_path.with_suffix(DCM_SUFFIX).name

    @property
    def dcm_file_path(self) -> Path:
        return self.image_path.with_suffix(DCM_SUFFIX)

    def write(
        self,
        output_path: Optional[Union[str, Path]] = None,
        *,
        output_dir: Optional[Union[str, Path]] = None,
        filename: Optional[str] = None,
        strict: bool = False,
        result: Optional[ValidationResult] = None,
    ) -> Path:
        """
        Write this cephalogram as a DICOM file.

        By default the file goes beside the image, named after it with a .dcm
        extension. Validation findings are logged and kept on
        self.validation_result but do not stop the write unless strict=True.

        Args:
            output_path: Exact destination file
            output_dir: Destination directory (used when output_path is None)
            filename: File name inside output_dir; defaults to dcm_file_name
            strict: Raise ValidationError instead of writing when findings exist
            result: Accumulator for validation findings

        Returns:
            Path of the written file

        Raises:
            ValidationError: strict=True and validation found problems
            IncompleteRecordError: the image header could not be probed
            OSError: reading the image or writing the output failed
        """
        if output_path is None:
            if output_dir is not None:
                output_path = Path(output_dir) / (filename or self.dcm_file_name)
            else:
                output_path = self.dcm_file_path

        self.prepare()

        self.validation_result = self.validate(result)
        if not self.validation_result.is_valid:
            logger.error("Dicom object did not pass validity tests.")
            logger.error("%s", self.validation_result.summary())
            if strict:
                raise_if_invalid(self.validation_result)

        require_pixel_geometry(self.dataset)
        return write_encapsulated(self.dataset, self.image_path, output_path)

    def __str__(self) -> str:
        return str(self.dataset)
