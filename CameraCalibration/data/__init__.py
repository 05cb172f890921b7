"""
Data access layer for the calibration pipeline.

This module provides:
- Image providers: Abstract image access from folders or memory
- I/O utilities: Calibration persistence in OpenCV FileStorage XML

Usage:
    from CameraCalibration.data import create_provider, save_calibration

    provider = create_provider('./chessboards')
    save_calibration(report.camera_model, './calibration')
"""

from CameraCalibration.core.interfaces import IImageProvider

from .providers import (
    FolderImageProvider,
    ArrayImageProvider,
    create_provider,
    load_images
)
from .io import save_calibration, load_calibration, MatrixIO

__all__ = [
    'IImageProvider',
    'FolderImageProvider',
    'ArrayImageProvider',
    'create_provider',
    'load_images',
    'save_calibration',
    'load_calibration',
    'MatrixIO',
]
