"""
Tests for record.py

Tests:
- Fixed attributes of a DX For Processing cephalogram
- Prepare / validate / write lifecycle
- Conveniences: image type, annotation, geometry, references, naming
- Failure modes: missing image, missing configuration, strict mode,
  unsupported image format
"""

import sys
import os

import pydicom
import pytest
from pydicom.uid import (
    DigitalXRayImageStorageForProcessing,
    JPEGBaseline8Bit,
    SpatialFiducialsStorage,
)

# Match existing test file pattern
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import SAMPLE_PROPERTIES, write_cephalogram_jpeg, write_properties
from cephalogram import codes
from cephalogram.config import ConfigurationError
from cephalogram.record import CephalogramRecord
from cephalogram.validation import ValidationError
from cephalogram.writer import IncompleteRecordError


def findings(record):
    return [finding.keyword for finding in record.validation_result.findings]


class TestConstruction:
    """Tests for building a record."""

    def test_missing_image_raises(self, tmp_path):
        """The image must exist."""
        with pytest.raises(FileNotFoundError):
            CephalogramRecord(tmp_path / "missing.jpg")

    def test_fixed_attributes(self, ceph_image):
        """Attributes shared by every cephalogram are set up front."""
        record = CephalogramRecord(ceph_image)
        ds = record.dataset

        assert ds.SOPClassUID == DigitalXRayImageStorageForProcessing
        assert ds.Modality == "DX"
        assert ds.PresentationIntentType == "FOR PROCESSING"
        assert list(ds.ImageType) == ["ORIGINAL", "PRIMARY", ""]
        assert ds.SamplesPerPixel == 1
        assert ds.PositionerType == "CEPHALOSTAT"
        assert ds.TableType == "FIXED"
        assert ds.ImageLaterality == "U"
        assert record.positioning.patient_orientation_code == codes.ERECT
        assert record.anatomy.anatomic_region == codes.HEAD

    def test_uids_come_from_factory(self, ceph_image, uid_factory):
        """SOP instance and series UIDs are generated on construction."""
        record = CephalogramRecord(ceph_image, uid_factory=uid_factory)

        assert record.uid == "1.2.826.0.1.3680043.10.543.1"
        assert record.series_uid == "1.2.826.0.1.3680043.10.543.2"
        assert record.study_uid is None

    def test_from_files_uses_sidecar(self, ceph_image):
        """from_files picks up IMAGE.properties."""
        record = CephalogramRecord.from_files(ceph_image)

        assert record.properties["patientID"] == "B1893"

    def test_from_files_explicit_config(self, ceph_image, tmp_path):
        """An explicit properties file replaces the sidecar."""
        config = write_properties(tmp_path / "other.properties", {"patientID": "OTHER"})

        record = CephalogramRecord.from_files(ceph_image, config)

        assert record.properties == {"patientID": "OTHER"}

    def test_from_files_without_config_raises(self, tmp_path):
        """A missing configuration is fatal before any record exists."""
        image = write_cephalogram_jpeg(tmp_path / "lonely.jpg")

        with pytest.raises(ConfigurationError) as excinfo:
            CephalogramRecord.from_files(image)

        assert "lonely.properties" in str(excinfo.value)

    def test_from_files_missing_image_raises(self, tmp_path):
        """A missing image is checked before the configuration."""
        with pytest.raises(FileNotFoundError):
            CephalogramRecord.from_files(tmp_path / "missing.jpg")


class TestPrepare:
    """Tests for per-image attributes."""

    def test_pixel_attributes(self, ceph_image):
        """Pixel geometry comes from the JPEG header."""
        record = CephalogramRecord(ceph_image)
        record.prepare()
        ds = record.dataset

        assert ds.Rows == 48
        assert ds.Columns == 64
        assert ds.BitsAllocated == 8
        assert ds.BitsStored == 8
        assert ds.HighBit == 7
        assert ds.PhotometricInterpretation == "MONOCHROME2"
        assert ds.PixelRepresentation == 0
        assert record.detector.pixel_spacing == pytest.approx((25.4 / 300, 25.4 / 300), rel=1e-6)
        assert record.detector.imager_pixel_spacing == record.detector.pixel_spacing

    def test_identifiers_and_charset(self, ceph_image, uid_factory):
        """Study UID, character set and file meta are filled in."""
        record = CephalogramRecord(ceph_image, uid_factory=uid_factory)
        record.prepare()
        ds = record.dataset

        assert record.study_uid == "1.2.826.0.1.3680043.10.543.3"
        assert ds.SpecificCharacterSet == "ISO_IR 100"
        assert ds.file_meta.TransferSyntaxUID == JPEGBaseline8Bit
        assert ds.file_meta.MediaStorageSOPInstanceUID == record.uid
        assert ds.file_meta.MediaStorageSOPClassUID == DigitalXRayImageStorageForProcessing

    def test_prepare_is_idempotent(self, ceph_image, uid_factory):
        """A second prepare changes nothing."""
        record = CephalogramRecord.from_files(ceph_image, uid_factory=uid_factory)
        record.prepare()
        first = (record.uid, record.series_uid, record.study_uid, record.dataset.StudyTime)

        record.prepare()

        assert (record.uid, record.series_uid, record.study_uid, record.dataset.StudyTime) == first
        assert uid_factory.count == 3

    def test_explicit_study_uid_is_kept(self, ceph_image):
        """A study UID set before prepare survives it."""
        record = CephalogramRecord(ceph_image)
        record.study_uid = "1.2.3.4"

        record.prepare()

        assert record.study_uid == "1.2.3.4"


class TestWrite:
    """Tests for writing DICOM files."""

    def test_round_trip(self, ceph_image):
        """The written file reads back with the mapped attributes."""
        record = CephalogramRecord.from_files(ceph_image)

        output = record.write()

        assert output == ceph_image.with_suffix(".dcm")
        ds = pydicom.dcmread(output)
        assert ds.file_meta.TransferSyntaxUID == JPEGBaseline8Bit
        assert ds.SOPClassUID == DigitalXRayImageStorageForProcessing
        assert ds.SOPInstanceUID == record.uid
        assert ds.PatientName == "Doe^John"
        assert ds.PatientBirthDate == "19960412"
        assert ds.StudyDate == "20080312"
        assert ds.Rows == 48
        assert ds.Columns == 64
        assert float(ds.DistanceSourceToDetector) == 1524.0
        assert ds.ViewCodeSequence[0].CodeValue == "R-10236"
        assert ds.SeriesDescription == "LATERAL CEPHALOGRAM"
        assert list(ds.ImageOrientationPatient) == [0, -1, 0, 0, 0, -1]

    def test_jpeg_stream_is_embedded_verbatim(self, ceph_image):
        """The original JPEG bytes appear unchanged inside the file."""
        output = CephalogramRecord.from_files(ceph_image).write()

        assert ceph_image.read_bytes() in output.read_bytes()
        assert output.read_bytes().endswith(b"\xfe\xff\xdd\xe0\x00\x00\x00\x00")

    def test_findings_do_not_block_write(self, ceph_image):
        """An 8-bit image is flagged but still written."""
        record = CephalogramRecord.from_files(ceph_image)

        output = record.write()

        assert output.exists()
        assert findings(record) == ["BitsAllocated", "BitsStored"]

    def test_low_resolution_is_flagged(self, tmp_path):
        """100 DPI is coarser than allowed, the file is still written."""
        image = write_cephalogram_jpeg(tmp_path / "coarse.jpg", dpi=(100, 100))
        record = CephalogramRecord(image, SAMPLE_PROPERTIES)

        output = record.write()

        assert output.exists()
        assert "PixelSpacing" in findings(record)

    def test_missing_resolution_is_flagged(self, tmp_path):
        """No DPI leaves spacing unset and is reported."""
        image = write_cephalogram_jpeg(tmp_path / "nodpi.jpg", dpi=None)
        record = CephalogramRecord(image, SAMPLE_PROPERTIES)

        record.write()

        assert "PixelSpacing" not in record.dataset
        assert "PixelSpacing" in findings(record)

    def test_strict_mode_raises_and_writes_nothing(self, ceph_image):
        """strict=True turns findings into ValidationError."""
        record = CephalogramRecord.from_files(ceph_image)

        with pytest.raises(ValidationError):
            record.write(strict=True)

        assert not ceph_image.with_suffix(".dcm").exists()

    def test_unsupported_format_raises(self, tmp_path):
        """A PNG disguised as .jpg has no pixel geometry and is not written."""
        image = write_cephalogram_jpeg(tmp_path / "fake.jpg", image_format="PNG")
        record = CephalogramRecord(image, SAMPLE_PROPERTIES)

        with pytest.raises(IncompleteRecordError):
            record.write()

        assert "Rows" not in record.dataset
        assert not image.with_suffix(".dcm").exists()

    def test_output_dir_and_filename(self, ceph_image, tmp_path):
        """write(output_dir=..., filename=...) overrides the default location."""
        out = tmp_path / "out"
        out.mkdir()
        record = CephalogramRecord.from_files(ceph_image)

        assert record.write(output_dir=out) == out / "B1893F12.dcm"
        assert record.write(output_dir=out, filename="ceph.dcm") == out / "ceph.dcm"
        assert record.write(tmp_path / "exact.dcm") == tmp_path / "exact.dcm"

    def test_palette_tables_are_stripped(self, ceph_image):
        """Palette colour tables never reach the file."""
        record = CephalogramRecord.from_files(ceph_image)
        record.dataset.RedPaletteColorLookupTableData = b"\x00\x01"

        output = record.write()

        assert "RedPaletteColorLookupTableData" not in pydicom.dcmread(output)
        assert record.validation_result.removed == ["RedPaletteColorLookupTableData"]


class TestConveniences:
    """Tests for the record's setters and accessors."""

    def test_secondary_image_type(self, ceph_image):
        """ORIGINAL\\SECONDARY replaces the default."""
        record = CephalogramRecord(ceph_image)
        record.set_secondary_image_type()

        assert list(record.dataset.ImageType) == ["ORIGINAL", "SECONDARY", ""]

        record.set_primary_image_type()
        assert list(record.dataset.ImageType) == ["ORIGINAL", "PRIMARY", ""]

    def test_burned_in_annotation(self, ceph_image):
        """True and False become YES and NO."""
        record = CephalogramRecord(ceph_image)

        record.set_burned_in_annotation(True)
        assert record.dataset.BurnedInAnnotation == "YES"

        record.set_burned_in_annotation(False)
        assert record.dataset.BurnedInAnnotation == "NO"

    def test_set_distance(self, ceph_image):
        """String distances set SID, SOD and derived magnification."""
        record = CephalogramRecord(ceph_image)

        record.set_distance("1524", "1371.6")

        assert record.positioning.distance_source_to_detector == 1524.0
        assert record.positioning.estimated_radiographic_magnification_factor == pytest.approx(
            1524.0 / 1371.6, rel=1e-6
        )

    def test_set_magnification(self, ceph_image):
        """A percentage becomes a factor."""
        record = CephalogramRecord(ceph_image)

        record.set_magnification("40")

        assert record.positioning.estimated_radiographic_magnification_factor == pytest.approx(0.40)

    def test_projection_shortcuts(self, ceph_image):
        """Each shortcut sets its angle and view code."""
        record = CephalogramRecord(ceph_image)

        record.set_right_lateral()
        assert record.positioning.positioner_primary_angle == -90
        record.set_antero_posterior()
        assert record.positioning.view_code == codes.ANTERO_POSTERIOR_VIEW
        record.set_postero_anterior()
        assert record.positioning.positioner_primary_angle == 180
        record.set_left_lateral()
        assert record.positioning.view_code == codes.LEFT_LATERAL_VIEW

    def test_referenced_image(self, ceph_image):
        """The other image of a biplane pair is referenced by purpose code."""
        record = CephalogramRecord(ceph_image)

        record.set_referenced_image("1.2.3.4")

        item = record.dataset.ReferencedImageSequence[0]
        assert item.ReferencedSOPClassUID == DigitalXRayImageStorageForProcessing
        assert item.ReferencedSOPInstanceUID == "1.2.3.4"
        assert item.PurposeOfReferenceCodeSequence[0].CodeValue == "121314"

    def test_referenced_fiducial_set(self, ceph_image):
        """The fiducial set is referenced as a Spatial Fiducials instance."""
        record = CephalogramRecord(ceph_image)
        assert record.referenced_fiducial_set is None

        record.set_referenced_fiducial_set("1.2.3.5")

        assert record.referenced_fiducial_set == "1.2.3.5"
        item = record.dataset.ReferencedInstanceSequence[0]
        assert item.ReferencedSOPClassUID == SpatialFiducialsStorage
        assert item.PurposeOfReferenceCodeSequence[0].CodeValue == "112171"
        assert item.PurposeOfReferenceCodeSequence[0].CodingSchemeVersion == "01"

    def test_study_description(self, ceph_image):
        """Study description is read and written through the record."""
        record = CephalogramRecord(ceph_image)
        record.study_description = "Orthodontic records"

        assert record.study_description == "Orthodontic records"

    def test_dcm_file_name(self, ceph_image):
        """Same name as the image with a .dcm extension."""
        record = CephalogramRecord(ceph_image)

        assert record.dcm_file_name == "B1893F12.dcm"
        assert record.dcm_file_path == ceph_image.parent / "B1893F12.dcm"

    def test_maximum_pixel_spacing(self, ceph_image):
        """Same ceiling the validator uses."""
        assert CephalogramRecord(ceph_image).maximum_pixel_spacing() == pytest.approx(25.4 / 128)

    def test_str_dumps_dataset(self, ceph_image):
        """str() shows the attributes."""
        assert "Modality" in str(CephalogramRecord(ceph_image))
