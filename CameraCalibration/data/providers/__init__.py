"""
Image providers.

Usage:
    from CameraCalibration.data.providers import create_provider

    provider = create_provider('./chessboards')
    image = provider.get_image(0)
"""

from CameraCalibration.core.interfaces import IImageProvider

from .folder_provider import (
    FolderImageProvider,
    ArrayImageProvider,
    create_provider,
    load_images
)

__all__ = [
    'IImageProvider',
    'FolderImageProvider',
    'ArrayImageProvider',
    'create_provider',
    'load_images',
]
