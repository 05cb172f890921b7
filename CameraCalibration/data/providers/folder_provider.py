"""
Image providers for calibration sessions.

FolderImageProvider reads every image file of one folder in sorted name
order; ArrayImageProvider wraps images already in memory.
"""

import numpy as np
import cv2
from pathlib import Path
from typing import List, Optional, Sequence, Union

from CameraCalibration.core.interfaces import IImageProvider
from CameraCalibration.core.exceptions import IOFailure
from CameraCalibration.logger import get_logger

logger = get_logger("data.providers")


class FolderImageProvider(IImageProvider):
    """
    Images of a folder, sorted by file name.

    Images are decoded lazily, one per get_image call. Every regular file in
    the folder is part of the sequence unless `extensions` restricts it, so a
    file OpenCV cannot decode surfaces as an IOFailure instead of being
    silently dropped.

    Example:
        >>> provider = FolderImageProvider('./chessboards')
        >>> first = provider.get_image(0)
    """

    def __init__(self, folder_path: Union[str, Path],
                 extensions: Optional[Sequence[str]] = None):
        """
        Initialize provider.

        Args:
            folder_path: Folder containing checkerboard images
            extensions: Optional file suffixes to keep (case-insensitive, e.g. ['.png'])

        Raises:
            IOFailure: If the folder does not exist
        """
        self.folder_path = Path(folder_path)
        if not self.folder_path.is_dir():
            raise IOFailure("Image folder does not exist", path=str(self.folder_path))

        self.extensions = None
        if extensions:
            self.extensions = {e.lower() if e.startswith('.') else f".{e.lower()}" for e in extensions}

        self._files = self._scan()
        logger.info(f"Found {len(self._files)} images in {self.folder_path}")

    def _scan(self) -> List[Path]:
        files = [p for p in self.folder_path.iterdir() if p.is_file()]
        if self.extensions is not None:
            files = [p for p in files if p.suffix.lower() in self.extensions]
        return sorted(files, key=lambda p: p.name)

    @property
    def files(self) -> List[Path]:
        return list(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def get_image(self, index: int) -> np.ndarray:
        path = self._files[index]
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise IOFailure("Could not decode image", path=str(path), image_index=index)
        return image

    def get_identifier(self, index: int) -> str:
        return self._files[index].name


class ArrayImageProvider(IImageProvider):
    """In-memory images (video frames, synthetic renders)"""

    def __init__(self, images: Sequence[np.ndarray], identifiers: Optional[Sequence[str]] = None):
        self._images = list(images)
        if identifiers is not None and len(identifiers) != len(self._images):
            raise ValueError(f"{len(identifiers)} identifiers for {len(self._images)} images")
        self._identifiers = list(identifiers) if identifiers is not None else None

    def __len__(self) -> int:
        return len(self._images)

    def get_image(self, index: int) -> np.ndarray:
        image = self._images[index]
        if image is None:
            raise IOFailure("Image is missing", image_index=index)
        return image

    def get_identifier(self, index: int) -> str:
        if self._identifiers is not None:
            return self._identifiers[index]
        return f"image_{index:03d}"


def create_provider(source: Union[str, Path, IImageProvider, Sequence[np.ndarray]],
                    **kwargs) -> IImageProvider:
    """
    Pick a provider for a source.

    Args:
        source: Folder path, existing provider, or sequence of images
        **kwargs: Passed to the provider constructor

    Returns:
        IImageProvider
    """
    if isinstance(source, IImageProvider):
        return source
    if isinstance(source, (str, Path)):
        return FolderImageProvider(source, **kwargs)
    if isinstance(source, np.ndarray) and source.ndim in (2, 3) and source.dtype != object:
        raise ValueError("Pass a sequence of images, not a single image array")
    return ArrayImageProvider(source, **kwargs)


def load_images(folder_path: Union[str, Path],
                extensions: Optional[Sequence[str]] = None) -> List[np.ndarray]:
    """
    Load every image of a folder in sorted name order.

    Raises:
        IOFailure: If the folder is missing or an image cannot be decoded
    """
    return FolderImageProvider(folder_path, extensions).load_all()
