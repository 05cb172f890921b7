"""
Thresholding stage of checkerboard detection.

Turns an input image into binary masks in which the dark squares are
foreground (255) and everything else is background (0).
"""

import numpy as np
import cv2
from typing import Iterator, Sequence, Tuple


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to single-channel uint8.

    Args:
        image: HxW, HxWx1, HxWx3 (BGR) or HxWx4 (BGRA) array

    Returns:
        HxW uint8 image

    Raises:
        ValueError: If the array is empty or has an unsupported shape
    """
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("Empty image")

    if image.ndim == 2:
        gray = image
    elif image.ndim == 3 and image.shape[2] == 1:
        gray = image[:, :, 0]
    elif image.ndim == 3 and image.shape[2] == 3:
        gray = cv2.cvtColor(_as_uint8(image), cv2.COLOR_BGR2GRAY)
    elif image.ndim == 3 and image.shape[2] == 4:
        gray = cv2.cvtColor(_as_uint8(image), cv2.COLOR_BGRA2GRAY)
    else:
        raise ValueError(f"Unsupported image shape: {image.shape}")

    return _as_uint8(gray)


def _as_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    # Stretch other depths to the full 8-bit range
    return cv2.normalize(image.astype(np.float32), None, 0, 255,
                         cv2.NORM_MINMAX).astype(np.uint8)


def normalize_intensity(gray: np.ndarray) -> np.ndarray:
    """Histogram equalization to spread low-contrast images over the full range"""
    return cv2.equalizeHist(gray)


def block_size_for(image_shape: Tuple[int, ...], fraction: float) -> int:
    """
    Odd adaptive-threshold block size as a fraction of the shorter image side.

    The block must be wider than a checkerboard square, otherwise the interior
    of a dark square equals its local mean and drops out of the mask.
    """
    size = int(round(min(image_shape[:2]) * fraction))
    size = max(size, 3)
    return size if size % 2 == 1 else size + 1


def binarize(gray: np.ndarray, block_size: int, offset: float = 10.0) -> np.ndarray:
    """
    Adaptive mean threshold, inverted so dark squares become foreground.

    Args:
        gray: HxW uint8 image
        block_size: Odd neighbourhood size for the local mean
        offset: Constant subtracted from the local mean

    Returns:
        HxW uint8 mask (255 = dark)
    """
    if block_size < 3 or block_size % 2 == 0:
        raise ValueError(f"block_size must be odd and >= 3, got {block_size}")
    return cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C,
                                 cv2.THRESH_BINARY_INV, block_size, offset)


def global_binarize(gray: np.ndarray) -> np.ndarray:
    """Otsu threshold, inverted so dark squares become foreground"""
    _, mask = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    return mask


def separate_squares(mask: np.ndarray, iterations: int) -> np.ndarray:
    """
    Erode the foreground so dark squares that touch at a corner split apart.

    Args:
        mask: Binary mask with dark squares as foreground
        iterations: Number of 3x3 erosions
    """
    if iterations <= 0:
        return mask
    kernel = np.ones((3, 3), np.uint8)
    return cv2.erode(mask, kernel, iterations=iterations)


def threshold_strategies(gray: np.ndarray,
                         block_fractions: Sequence[float],
                         offset: float,
                         erosions: Sequence[int],
                         use_otsu: bool = True) -> Iterator[Tuple[str, int, np.ndarray]]:
    """
    Yield candidate binary masks in the order they should be tried.

    Args:
        gray: HxW uint8 image (already normalized if requested)
        block_fractions: Adaptive block sizes as fractions of the shorter side
        offset: Adaptive threshold offset
        erosions: Erosion depths tried for every threshold
        use_otsu: Append a global Otsu threshold after the adaptive ones

    Yields:
        (strategy name, erosion iterations, mask)
    """
    base_masks = []
    for fraction in block_fractions:
        block = block_size_for(gray.shape, fraction)
        base_masks.append((f"adaptive_{block}", lambda b=block: binarize(gray, b, offset)))
    if use_otsu:
        base_masks.append(("otsu", lambda: global_binarize(gray)))

    for name, make_mask in base_masks:
        mask = make_mask()
        for iterations in erosions:
            yield f"{name}_erode{iterations}", iterations, separate_squares(mask, iterations)
