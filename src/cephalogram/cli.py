#!/usr/bin/env python3
"""
Cephalogram to DICOM CLI

Converts one cephalogram JPEG, or a lateral + PA biplane pair, into DICOM DX
For Processing files. Each image needs a .properties file, by default the
one beside it with the same name.

Usage:
    cephalogram B1893F12.jpg
    cephalogram B1893L12.jpg B1893P12.jpg -o out/ --fiducial-uid 1.2.3.4
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConfigResolution, resolve_configuration
from .pairing import link_biplane_pair, reference_fiducial_set
from .record import CephalogramRecord
from .validation import ValidationError
from .writer import IncompleteRecordError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cephalogram',
        description='Convert digital cephalograms to DICOM DX For Processing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One cephalogram, configuration in B1893F12.properties
  cephalogram B1893F12.jpg

  # Explicit configuration file
  cephalogram B1893F12.jpg -c patient.properties

  # Lateral + PA biplane pair written to out/
  cephalogram B1893L12.jpg B1893P12.jpg -o out/
        """
    )

    parser.add_argument(
        'images',
        type=Path,
        nargs='+',
        metavar='IMAGE',
        help='Cephalogram JPEG (give two for a biplane pair)'
    )

    parser.add_argument(
        '-c', '--config',
        type=Path,
        action='append',
        default=[],
        help='Properties file, once per image in order (default: IMAGE.properties)'
    )

    parser.add_argument(
        '-o', '--output-dir',
        type=Path,
        help='Directory for the .dcm files (default: beside each image)'
    )

    parser.add_argument(
        '--fiducial-uid',
        help='SOP Instance UID of the Spatial Fiducials object to reference'
    )

    parser.add_argument(
        '--secondary',
        action='store_true',
        help='Mark images ORIGINAL\\SECONDARY instead of ORIGINAL\\PRIMARY'
    )

    parser.add_argument(
        '--strict',
        action='store_true',
        help='Refuse to write images that fail validation'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if len(args.images) > 2:
        print("Error: At most two images (a biplane pair) can be converted together", file=sys.stderr)
        return 1
    if len(args.config) > len(args.images):
        print("Error: More configuration files than images", file=sys.stderr)
        return 1

    # Validate input before building anything
    resolutions: List[ConfigResolution] = []
    for index, image in enumerate(args.images):
        if not image.is_file():
            print(f"Error: Input file does not exist: {image}", file=sys.stderr)
            return 1
        config = args.config[index] if index < len(args.config) else None
        resolution = resolve_configuration(image, config)
        if not resolution.ok:
            print(resolution.error, file=sys.stderr)
            return 1
        resolutions.append(resolution)

    records = [
        CephalogramRecord(image, resolution.properties)
        for image, resolution in zip(args.images, resolutions)
    ]

    for record in records:
        if args.secondary:
            record.set_secondary_image_type()
        record.prepare()

    if len(records) == 2:
        link_biplane_pair(*records)
    if args.fiducial_uid:
        reference_fiducial_set(records, args.fiducial_uid)

    if args.output_dir:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    success_count = 0
    fail_count = 0
    for record in records:
        if args.verbose:
            print(f"Processing: {record.image_path}")
        try:
            output_path = record.write(output_dir=args.output_dir, strict=args.strict)
        except ValidationError as e:
            fail_count += 1
            print(f"  ✗ Failed validation: {record.image_path}\n{e}", file=sys.stderr)
            continue
        except (IncompleteRecordError, OSError) as e:
            fail_count += 1
            print(f"  ✗ Failed: {record.image_path}: {e}", file=sys.stderr)
            continue

        success_count += 1
        findings = record.validation_result.findings if record.validation_result else []
        print(f"  ✓ Written: {output_path}")
        if args.verbose:
            print(f"    SOP Instance UID: {record.uid}")
            print(f"    Study Instance UID: {record.study_uid}")
            print(f"    Validation findings: {len(findings)}")

    # Summary
    print("\nConversion complete:")
    print(f"  Successful: {success_count}")
    print(f"  Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
