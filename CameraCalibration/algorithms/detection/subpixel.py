"""
Sub-pixel corner refinement.

Iterative gradient-orthogonality refinement: at the true corner q every image
gradient g(p) inside a small window is orthogonal to the vector p - q (the
gradient is zero in flat regions and perpendicular to the edge on an edge
through q). Solving sum_p w(p) g g^T (p - q) = 0 for q gives

    q = (sum w g g^T)^-1 sum w g g^T p

which is iterated with the window re-centred on the latest estimate.
"""

import numpy as np
import cv2
from typing import Tuple

from CameraCalibration.logger import get_logger

logger = get_logger("detection.subpixel")

_DET_EPS = np.finfo(np.float64).eps ** 2


def gaussian_window(half_size: Tuple[int, int]) -> np.ndarray:
    """
    Separable Gaussian weights over a (2h+1) x (2w+1) window.

    Args:
        half_size: (w, h) window half-size in pixels

    Returns:
        (2h+1, 2w+1) float64 weights, 1.0 at the centre
    """
    w, h = half_size
    x = np.arange(-w, w + 1) / float(w)
    y = np.arange(-h, h + 1) / float(h)
    return np.outer(np.exp(-y * y), np.exp(-x * x))


def refine_corner(image: np.ndarray,
                  corner: np.ndarray,
                  half_size: Tuple[int, int] = (5, 5),
                  max_iterations: int = 30,
                  epsilon: float = 0.1,
                  weights: np.ndarray = None) -> Tuple[np.ndarray, int]:
    """
    Refine a single corner.

    Args:
        image: HxW float32 image
        corner: (2,) initial (x, y) estimate
        half_size: (w, h) search window half-size
        max_iterations: Iteration cap
        epsilon: Stop once the update is shorter than this (pixels)
        weights: Precomputed gaussian_window(half_size)

    Returns:
        (refined (2,) corner, iterations used). If the estimate drifts more
        than one half-size from the initial corner the initial corner is
        returned.
    """
    w, h = half_size
    if weights is None:
        weights = gaussian_window(half_size)

    rows, cols = image.shape[:2]
    patch_size = (2 * w + 3, 2 * h + 3)
    px = np.arange(-w, w + 1, dtype=np.float64)[None, :]
    py = np.arange(-h, h + 1, dtype=np.float64)[:, None]
    eps_sq = epsilon * epsilon

    start = np.asarray(corner, dtype=np.float64).reshape(2)
    current = start.copy()
    iterations = 0

    while iterations < max_iterations:
        patch = cv2.getRectSubPix(image, patch_size,
                                  (float(current[0]), float(current[1]))).astype(np.float64)

        # Central differences over the inner (2h+1) x (2w+1) window
        gx = patch[1:-1, 2:] - patch[1:-1, :-2]
        gy = patch[2:, 1:-1] - patch[:-2, 1:-1]

        gxx = gx * gx * weights
        gxy = gx * gy * weights
        gyy = gy * gy * weights

        a, b, c = gxx.sum(), gxy.sum(), gyy.sum()
        bb1 = (gxx * px + gxy * py).sum()
        bb2 = (gxy * px + gyy * py).sum()

        det = a * c - b * b
        if abs(det) <= _DET_EPS:
            break

        step = np.array([c * bb1 - b * bb2, a * bb2 - b * bb1]) / det
        current = current + step
        iterations += 1

        if (current[0] < 0 or current[0] >= cols or
                current[1] < 0 or current[1] >= rows):
            break
        if step @ step <= eps_sq:
            break

    if abs(current[0] - start[0]) > w or abs(current[1] - start[1]) > h:
        return start, iterations
    return current, iterations


def refine_corners(gray: np.ndarray,
                   corners: np.ndarray,
                   half_size: Tuple[int, int] = (5, 5),
                   max_iterations: int = 30,
                   epsilon: float = 0.1) -> np.ndarray:
    """
    Refine every corner of a detection.

    Args:
        gray: HxW grayscale image (any depth)
        corners: (N, 2) initial corners
        half_size: (w, h) search window half-size, (5, 5) = 11x11 window
        max_iterations: Iteration cap per corner
        epsilon: Update length below which a corner has converged

    Returns:
        (N, 2) float64 refined corners, same order
    """
    if half_size[0] < 1 or half_size[1] < 1:
        raise ValueError(f"Window half-size must be positive, got {half_size}")

    image = np.asarray(gray, dtype=np.float32)
    weights = gaussian_window(half_size)

    corners = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
    refined = np.empty_like(corners)
    total_iterations = 0
    for k, corner in enumerate(corners):
        refined[k], used = refine_corner(image, corner, half_size,
                                         max_iterations, epsilon, weights)
        total_iterations += used

    if len(corners):
        shift = np.linalg.norm(refined - corners, axis=1)
        logger.debug(f"Sub-pixel refinement: {len(corners)} corners, "
                     f"mean shift {shift.mean():.3f}px, "
                     f"{total_iterations / len(corners):.1f} iterations/corner")
    return refined
