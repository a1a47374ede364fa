"""
Encapsulated Serializer

Writes a prepared cephalogram dataset as a DICOM file whose Pixel Data is
the original JPEG stream, encapsulated per PS3.5 Annex A.4:

    (7FE0,0010) OB  length 0xFFFFFFFF
      (FFFE,E000) length 0             empty Basic Offset Table
      (FFFE,E000) length n rounded up  the JPEG bytes (+ one 0x00 if n is odd)
    (FFFE,E0DD) length 0               Sequence Delimitation Item

The file meta and dataset are written by pydicom; the pixel data element is
streamed straight from the source file so the image is never held in memory.
There is no temp-file-then-rename: a failure mid-stream leaves a partially
written output file behind.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Union

from pydicom.dataset import Dataset
from pydicom.filebase import DicomFileLike

logger = logging.getLogger(__name__)

PIXEL_DATA_TAG = 0x7FE00010
ITEM_TAG = 0xFFFEE000
SEQUENCE_DELIMITATION_TAG = 0xFFFEE0DD
UNDEFINED_LENGTH = 0xFFFFFFFF
COPY_BUFFER_SIZE = 8192


class IncompleteRecordError(RuntimeError):
    """Raised when a record lacks the pixel geometry needed to be written."""


def padded_length(length: int) -> int:
    """Item length rounded up to the next even number."""
    return (length + 1) & ~1


def require_pixel_geometry(dataset: Dataset) -> None:
    missing = [kw for kw in ("Rows", "Columns", "BitsAllocated") if kw not in dataset]
    if missing:
        raise IncompleteRecordError(
            "Cannot write cephalogram without pixel geometry; missing "
            + ", ".join(missing)
        )


def write_pixel_data_header(fp: DicomFileLike) -> None:
    fp.write_tag(PIXEL_DATA_TAG)
    fp.write(b"OB")
    fp.write_US(0)  # reserved
    fp.write_UL(UNDEFINED_LENGTH)


def write_item_header(fp: DicomFileLike, length: int) -> None:
    fp.write_tag(ITEM_TAG)
    fp.write_UL(length)


def write_sequence_delimiter(fp: DicomFileLike) -> None:
    fp.write_tag(SEQUENCE_DELIMITATION_TAG)
    fp.write_UL(0)


def write_encapsulated(
    dataset: Dataset,
    image_path: Union[str, Path],
    output_path: Union[str, Path],
) -> Path:
    """
    Write dataset + encapsulated image to output_path.

    Args:
        dataset: Dataset with file_meta already set (transfer syntax JPEG Baseline)
        image_path: Compressed source image, copied verbatim
        output_path: Destination .dcm file

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)

    with open(image_path, "rb") as source, open(output_path, "wb") as raw:
        image_length = os.fstat(source.fileno()).st_size
        logger.info("Writing to file %s", output_path.resolve())

        dataset.save_as(raw, enforce_file_format=True)

        # pydicom.encaps.encapsulate() needs the frame as bytes in memory.
        # encapsulate_buffer() could stream it, but only through PixelData on
        # the dataset, which would also put the pixel element inside
        # validation and str(record). The element is appended after save_as().
        fp = DicomFileLike(raw)
        fp.is_little_endian = True

        write_pixel_data_header(fp)
        write_item_header(fp, 0)
        write_item_header(fp, padded_length(image_length))
        shutil.copyfileobj(source, raw, COPY_BUFFER_SIZE)
        if image_length & 1:
            fp.write(b"\x00")
        write_sequence_delimiter(fp)

    logger.debug("Encapsulated %d image bytes into %s", image_length, output_path)
    return output_path
