"""
Visualization of detected checkerboard corners.

The viewer is a pure sink: it copies the image before drawing and never
feeds anything back into calibration.
"""

import numpy as np
import cv2
from typing import Optional, Tuple

from CameraCalibration.logger import get_logger

logger = get_logger("visualization")

CONFIRM_KEY = ord(' ')


def draw_corners(image: np.ndarray,
                 pattern_size: Tuple[int, int],
                 corners: np.ndarray,
                 found: bool = True) -> np.ndarray:
    """
    Draw detected corners on a copy of the image.

    Args:
        image: HxW or HxWx3 image
        pattern_size: (width, height) in internal corners
        corners: (width*height, 2) corners in row-major order
        found: Draw the connected (found) style

    Returns:
        HxWx3 uint8 BGR image with the corners drawn
    """
    canvas = image.copy()
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
    points = np.asarray(corners, dtype=np.float32).reshape(-1, 1, 2)
    cv2.drawChessboardCorners(canvas, tuple(pattern_size), points, found)
    return canvas


class CornerViewer:
    """
    Shows each detection in a window and waits for the confirm key (space).

    Example:
        >>> viewer = CornerViewer()
        >>> viewer.show(image, (6, 8), result.corners)
        >>> viewer.close()
    """

    def __init__(self, window_name: str = "Chessboard corners", confirm_key: int = CONFIRM_KEY):
        self.window_name = window_name
        self.confirm_key = confirm_key
        self._window_open = False

    def show(self, image: np.ndarray,
             pattern_size: Tuple[int, int],
             corners: np.ndarray,
             title: Optional[str] = None):
        """Draw and display one detection; blocks until the confirm key is pressed"""
        canvas = draw_corners(image, pattern_size, corners)
        if not self._window_open:
            cv2.namedWindow(self.window_name)
            self._window_open = True
        if title:
            cv2.setWindowTitle(self.window_name, title)
        cv2.imshow(self.window_name, canvas)

        logger.debug("Waiting for confirm key")
        while (cv2.waitKey(1) & 0xFF) != self.confirm_key:
            pass

    def close(self):
        if self._window_open:
            cv2.destroyWindow(self.window_name)
            self._window_open = False
