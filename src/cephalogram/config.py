"""
Sidecar Configuration Resolution

Every cephalogram image comes with a Java-style .properties file holding
patient, study and acquisition details. By default it sits beside the image
with the same name (B1893F12.jpg -> B1893F12.properties).

Resolution never exits the process: it returns a ConfigResolution that the
caller inspects. Only the command-line entry point decides to terminate.
"""

from __future__ import annotations

import configparser
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

PROPERTIES_SUFFIX = ".properties"
PROPERTIES_ENCODING = "latin-1"

SAMPLE_PROPERTIES_URL = (
    "https://github.com/open-ortho/dcm4ceph/blob/master/dcm4ceph-sampledata/B1893F12.properties"
)
DEFAULT_PROPERTIES_URL = (
    "https://github.com/open-ortho/dcm4ceph/blob/master/dcm4ceph-core/src/main/resources/"
    "ceph_defaults.properties"
)

_SECTION = "properties"
_SEPARATOR = re.compile(r"[=:]")


class ConfigurationError(RuntimeError):
    """Raised when the sidecar configuration cannot be located or parsed."""


@dataclass(frozen=True)
class ConfigResolution:
    ok: bool
    properties: Mapping[str, str] = field(default_factory=dict)
    source: Optional[Path] = None
    error: Optional[str] = None


def default_properties_path(image_path: Union[str, Path]) -> Path:
    """Properties file with the same name as the image, swapped extension."""
    return Path(image_path).with_suffix(PROPERTIES_SUFFIX)


def _normalize_line(line: str) -> str:
    """
    Rewrite one .properties line into configparser syntax.

    Leading whitespace is dropped so an indented line is a new key, not a
    continuation. A line with no = or : separates key and value at the first
    whitespace, and a bare key becomes key= with an empty value.
    """
    line = line.lstrip()
    if not line or line[0] in "#!" or _SEPARATOR.search(line):
        return line
    parts = line.split(None, 1)
    return f"{parts[0]}={parts[1] if len(parts) > 1 else ''}"


def load_properties(path: Union[str, Path]) -> Dict[str, str]:
    """
    Parse a .properties file.

    Supports key=value, key: value, key value and bare key lines, # and !
    comments, and keeps key case. A duplicated key keeps its last value.
    Backslash line continuations are not supported.

    Raises:
        OSError: file cannot be read
        configparser.Error: file cannot be parsed
    """
    text = Path(path).read_text(encoding=PROPERTIES_ENCODING)
    text = "\n".join(_normalize_line(line) for line in text.splitlines())

    parser = configparser.ConfigParser(
        delimiters=("=", ":"),
        comment_prefixes=("#", "!"),
        interpolation=None,
        strict=False,
    )
    parser.optionxform = str  # keep camelCase keys
    # "[name]" lines are keys, only the synthetic header opens a section
    parser.SECTCRE = re.compile(rf"\[(?P<header>{_SECTION})\]$")
    parser.read_string(f"[{_SECTION}]\n{text}", source=str(path))
    return dict(parser.items(_SECTION))


def resolve_configuration(
    image_path: Union[str, Path],
    config_path: Optional[Union[str, Path]] = None,
) -> ConfigResolution:
    """
    Locate and load the configuration for an image.

    Args:
        image_path: The cephalogram image
        config_path: Explicit properties file; defaults to the image's sidecar

    Returns:
        ConfigResolution with ok=False and an error message on failure
    """
    source = Path(config_path) if config_path is not None else default_properties_path(image_path)
    try:
        properties = load_properties(source)
    except (OSError, configparser.Error) as e:
        logger.debug("Configuration load failed for %s: %s", source, e)
        return ConfigResolution(ok=False, source=source, error=diagnostic(source, e))

    logger.info("Loaded %d properties from %s", len(properties), source)
    return ConfigResolution(ok=True, properties=properties, source=source)


def diagnostic(source: Path, cause: Optional[BaseException] = None) -> str:
    lines = [f"Cannot read from file {source}."]
    if cause is not None:
        lines.append(f"({cause.__class__.__name__}: {cause})")
    lines.extend([
        "Please use 2 files as input: %name%.jpg and %name%.properties .",
        "The .properties file is mandatory.",
        f"You may find example .properties file here: {SAMPLE_PROPERTIES_URL}",
        f"You may also find sensible defaults .properties file here: {DEFAULT_PROPERTIES_URL}",
    ])
    return "\n".join(lines)


def raise_if_failed(resolution: ConfigResolution) -> None:
    """Raise ConfigurationError if resolution failed."""
    if not resolution.ok:
        raise ConfigurationError(resolution.error)
