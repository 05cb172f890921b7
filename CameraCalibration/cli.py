"""
Command-line calibration.

Usage:
    calibrate-camera --images ./chessboards --output ./calibration
    calibrate-camera --images ./chessboards --width 9 --height 6 --side-length 25 --show
"""

import argparse
import sys
from typing import List, Optional

import numpy as np

from CameraCalibration.config import SessionConfig
from CameraCalibration.core.exceptions import CalibrationError
from CameraCalibration.logger import configure_root_logger, get_logger
from CameraCalibration.pipeline import CalibrationSession

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Single-camera intrinsic calibration from checkerboard images"
    )

    # Input/Output
    parser.add_argument('--images', type=str, required=True,
                        help='Folder with checkerboard images')
    parser.add_argument('--output', type=str, default=None,
                        help='Folder for Intrinsics.xml and Distortion.xml (not saved if omitted)')

    # Pattern
    parser.add_argument('--side-length', type=float, default=22.5,
                        help='Side length of one square in mm (default: 22.5)')
    parser.add_argument('--width', type=int, default=6,
                        help='Internal corners along a row (default: 6)')
    parser.add_argument('--height', type=int, default=8,
                        help='Internal corners along a column (default: 8)')

    # Execution
    parser.add_argument('--show', action='store_true',
                        help='Show each detection; press space to continue')
    parser.add_argument('--workers', type=int, default=1,
                        help='Detection threads (default: 1)')
    parser.add_argument('--rms-warning', type=float, default=1.0,
                        help='Warn when the RMS reprojection error exceeds this many pixels')

    # Logging
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Optional log file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_root_logger(level=args.log_level, log_file=args.log_file)

    try:
        config = SessionConfig(
            image_dir=args.images,
            output_dir=args.output,
            side_length=args.side_length,
            grid_width=args.width,
            grid_height=args.height,
            show_corners=args.show,
            workers=args.workers
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        session = CalibrationSession(config)
        report = session.calibrate()
        if args.output:
            session.save()
    except CalibrationError as e:
        logger.error(f"✗ Calibration failed: {e}")
        return 1

    with np.printoptions(precision=6, suppress=True):
        print("\nCamera matrix:")
        print(report.camera_matrix)
        print("\nDistortion (k1, k2, p1, p2, k3):")
        print(report.dist_coeffs)
    print(f"\nRMS reprojection error: {report.rms_error:.4f}px")
    print(f"Images accepted: {report.num_accepted}, rejected: {report.num_rejected}")

    if report.rms_error > args.rms_warning:
        logger.warning(f"RMS reprojection error {report.rms_error:.3f}px is above "
                       f"{args.rms_warning:.3f}px; check the rejected images and board flatness")
    return 0


if __name__ == '__main__':
    sys.exit(main())
