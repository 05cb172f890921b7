"""
Base interface for image providers.

This defines the contract that all image sources must implement,
so the calibration session never depends on where images come from.
"""

from abc import ABC, abstractmethod
from typing import Iterator, List

import numpy as np


class IImageProvider(ABC):
    """
    Abstract interface for calibration image sources.

    Implementations must be order-preserving and must not filter images:
    index i always refers to the same image for the life of the provider.
    """

    @abstractmethod
    def __len__(self) -> int:
        """Number of images available"""
        pass

    @abstractmethod
    def get_image(self, index: int) -> np.ndarray:
        """
        Load one decoded image.

        Args:
            index: Position in the provider's sequence

        Returns:
            np.ndarray: HxW or HxWx3 (BGR) image

        Raises:
            IOFailure: If the image cannot be loaded
            IndexError: If index is out of range
        """
        pass

    @abstractmethod
    def get_identifier(self, index: int) -> str:
        """
        Human-readable identifier (file name, frame id) for logging.

        Args:
            index: Position in the provider's sequence
        """
        pass

    def load_all(self) -> List[np.ndarray]:
        """Load every image in order"""
        return [self.get_image(i) for i in range(len(self))]

    def __iter__(self) -> Iterator[np.ndarray]:
        for i in range(len(self)):
            yield self.get_image(i)
