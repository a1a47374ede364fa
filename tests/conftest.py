"""
Pytest configuration and fixtures for cephalogram tests.
"""
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pytest
from PIL import Image

# Match existing test file pattern
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))


SAMPLE_PROPERTIES: Dict[str, str] = {
    "patientName": "Doe^John",
    "patientID": "B1893",
    "ethnicGroup": "Caucasian",
    "patientSex": "M",
    "patientAge": "012Y",
    "patientDOB": "1996-04-12",
    "studyDate": "2008-03-12",
    "studyTime": "10:30",
    "referringPhysician": "Smith^Jane",
    "studyID": "42",
    "accessionNumber": "ACC0001",
    "seriesNumber": "3",
    "instanceNumber": "1",
    "patientOrientationRow": "A",
    "patientOrientationColumn": "F",
    "sid": "1524",
    "sod": "1371.6",
    "cephalogramType": "L",
}


def write_cephalogram_jpeg(
    path: Path,
    size: Tuple[int, int] = (64, 48),
    dpi: Optional[Tuple[int, int]] = (300, 300),
    mode: str = "L",
    image_format: str = "JPEG",
) -> Path:
    """
    Write a small synthetic cephalogram.

    Content is a horizontal gradient so the encoder produces a realistic,
    non-trivial JPEG stream. No clinical data.

    Args:
        path: Destination file
        size: (width, height) in pixels
        dpi: (horizontal, vertical) resolution, or None for no resolution
        mode: Pillow mode, "L" or "RGB"
        image_format: Pillow format name to save as

    Returns:
        The path that was written to
    """
    width, height = size
    gradient = np.tile(np.linspace(0, 255, width, dtype=np.uint8), (height, 1))
    if mode == "RGB":
        gradient = np.stack([gradient] * 3, axis=-1)
    img = Image.fromarray(gradient)

    save_kwargs = {}
    if dpi is not None:
        save_kwargs["dpi"] = dpi
    img.save(path, image_format, **save_kwargs)
    return path


def write_properties(path: Path, properties: Dict[str, str]) -> Path:
    """Write a .properties sidecar file (ISO-8859-1)."""
    lines = ["# cephalogram test configuration"]
    lines.extend(f"{key}={value}" for key, value in properties.items())
    path.write_text("\n".join(lines) + "\n", encoding="latin-1")
    return path


class SequentialUIDs:
    """Deterministic UID factory: 1.2.826.0.1.3680043.10.543.1, .2, ..."""

    def __init__(self, root: str = "1.2.826.0.1.3680043.10.543."):
        self.root = root
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.root}{self.count}"


@pytest.fixture
def sample_properties() -> Dict[str, str]:
    return dict(SAMPLE_PROPERTIES)


@pytest.fixture
def ceph_image(tmp_path) -> Path:
    """A 64x48 8-bit grayscale JPEG at 300 DPI with its sidecar properties."""
    image = write_cephalogram_jpeg(tmp_path / "B1893F12.jpg")
    write_properties(tmp_path / "B1893F12.properties", SAMPLE_PROPERTIES)
    return image


@pytest.fixture
def ceph_pair(tmp_path) -> Tuple[Path, Path]:
    """Lateral and PA JPEGs with sidecar properties."""
    lateral = write_cephalogram_jpeg(tmp_path / "B1893L12.jpg")
    write_properties(tmp_path / "B1893L12.properties", SAMPLE_PROPERTIES)

    pa_properties = dict(SAMPLE_PROPERTIES, cephalogramType="PA", instanceNumber="2")
    pa = write_cephalogram_jpeg(tmp_path / "B1893P12.jpg", size=(48, 64))
    write_properties(tmp_path / "B1893P12.properties", pa_properties)
    return lateral, pa


@pytest.fixture
def uid_factory() -> SequentialUIDs:
    return SequentialUIDs()
