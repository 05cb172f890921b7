"""
Checkerboard Pattern Detector

Locates the internal corners of a planar checkerboard in one image and
returns them, refined to sub-pixel accuracy, in row-major template order.

Pipeline:
1. Grayscale conversion and optional histogram equalization
2. Binary masks from several threshold strategies (adaptive, Otsu) and
   erosion depths, tried in order
3. Dark-square quads and internal-corner candidates
4. Lattice assembly, validation and ordering
5. Sub-pixel refinement on the original grayscale image

The first strategy whose lattice validates wins. The detector never returns
a partial lattice.
"""

import math
import time
import numpy as np
from typing import Optional

from CameraCalibration.core.structures import DetectionResult
from CameraCalibration.logger import get_logger

from .threshold import to_grayscale, normalize_intensity, threshold_strategies
from .quads import extract_quads, match_quad_corners
from .lattice import assemble_lattice
from .subpixel import refine_corners

logger = get_logger("detection.pattern")


class PatternDetectorConfig:
    """Configuration for checkerboard detection"""

    # Thresholding
    ADAPTIVE_BLOCK_FRACTIONS = (0.25, 0.125)  # Of the shorter image side
    ADAPTIVE_OFFSET = 10
    USE_OTSU_FALLBACK = True
    EROSION_ITERATIONS = (1, 2, 3)
    NORMALIZE_IMAGE = True

    # Early rejection when dark squares are clearly missing
    FAST_CHECK = True
    FAST_CHECK_QUAD_FRACTION = 0.5

    # Quad filtering
    MIN_QUAD_AREA = 25.0
    MAX_QUAD_SIDE_RATIO = 4.0
    MIN_QUAD_FILL_RATIO = 0.7
    CORNER_MATCH_RATIO = 0.35  # Of the local square side

    # Sub-pixel refinement
    SUBPIX_WINDOW = (5, 5)
    SUBPIX_MAX_ITERATIONS = 30
    SUBPIX_EPSILON = 0.1


class PatternDetector:
    """
    Checkerboard internal-corner detector.

    Stateless apart from its configuration, so one instance can serve several
    threads.
    """

    def __init__(self, **config):
        """
        Initialize detector.

        Args:
            **config: Overrides for PatternDetectorConfig (case-insensitive keys)
        """
        self.config = PatternDetectorConfig()

        for key, value in config.items():
            if hasattr(self.config, key.upper()):
                setattr(self.config, key.upper(), value)
            else:
                raise ValueError(f"Unknown detector option: {key}")

    def _strategies(self, gray: np.ndarray, erosions):
        return threshold_strategies(
            gray,
            block_fractions=self.config.ADAPTIVE_BLOCK_FRACTIONS,
            offset=self.config.ADAPTIVE_OFFSET,
            erosions=erosions,
            use_otsu=self.config.USE_OTSU_FALLBACK
        )

    def _extract(self, mask: np.ndarray):
        return extract_quads(
            mask,
            min_area=self.config.MIN_QUAD_AREA,
            max_side_ratio=self.config.MAX_QUAD_SIDE_RATIO,
            min_fill_ratio=self.config.MIN_QUAD_FILL_RATIO
        )

    def fast_check(self, gray: np.ndarray, grid_width: int, grid_height: int) -> bool:
        """
        Cheap test for the presence of a checkerboard.

        Extracts quads from every threshold and erosion depth and passes as
        soon as one mask yields a reasonable share of the dark squares the
        lattice needs. Small or rotated boards may only split into separate
        squares at the deeper erosions.
        """
        needed = math.ceil(grid_width * grid_height / 2)
        threshold = max(1, int(needed * self.config.FAST_CHECK_QUAD_FRACTION))
        for _, _, mask in self._strategies(gray, self.config.EROSION_ITERATIONS):
            if len(self._extract(mask)) >= threshold:
                return True
        return False

    def detect(self,
               image: np.ndarray,
               grid_width: int,
               grid_height: int,
               image_index: Optional[int] = None) -> DetectionResult:
        """
        Detect checkerboard internal corners.

        Args:
            image: HxW grayscale or HxWx3 BGR image (not modified)
            grid_width: Internal corners per row
            grid_height: Internal corners per column
            image_index: Optional index stored on the result

        Returns:
            DetectionResult: found with (grid_width*grid_height, 2) corners in
            row-major order, or not found with a reason

        Raises:
            ValueError: If the image array is malformed or the grid is too small
        """
        if grid_width < 2 or grid_height < 2:
            raise ValueError(f"Grid must be at least 2x2, got {grid_width}x{grid_height}")

        start_time = time.time()
        gray = to_grayscale(image)
        work = normalize_intensity(gray) if self.config.NORMALIZE_IMAGE else gray

        if self.config.FAST_CHECK and not self.fast_check(work, grid_width, grid_height):
            return DetectionResult.not_found("fast check: no checkerboard-like squares",
                                             image_index=image_index)

        needed_quads = math.ceil(grid_width * grid_height / 2)
        reason = "no threshold strategy produced a valid lattice"
        most_quads = 0

        for strategy, iterations, mask in self._strategies(work, self.config.EROSION_ITERATIONS):
            quads = self._extract(mask)
            most_quads = max(most_quads, len(quads))
            if len(quads) < needed_quads:
                continue

            candidates = match_quad_corners(quads, self.config.CORNER_MATCH_RATIO, iterations)
            corners, lattice_reason = assemble_lattice(candidates, quads, grid_width, grid_height)
            if corners is None:
                reason = lattice_reason
                logger.debug(f"  {strategy}: {len(quads)} quads, "
                             f"{len(candidates)} candidates: {lattice_reason}")
                continue

            refined = refine_corners(gray, corners,
                                     half_size=self.config.SUBPIX_WINDOW,
                                     max_iterations=self.config.SUBPIX_MAX_ITERATIONS,
                                     epsilon=self.config.SUBPIX_EPSILON)

            return DetectionResult.found_at(
                refined,
                image_index=image_index,
                strategy=strategy,
                num_quads=len(quads),
                detection_time=time.time() - start_time
            )

        if most_quads < needed_quads:
            reason = f"found at most {most_quads} dark squares, need {needed_quads}"
        return DetectionResult.not_found(reason, image_index=image_index,
                                         detection_time=time.time() - start_time)

    def __repr__(self) -> str:
        return (f"PatternDetector(normalize={self.config.NORMALIZE_IMAGE}, "
                f"fast_check={self.config.FAST_CHECK}, "
                f"subpix_window={self.config.SUBPIX_WINDOW})")


def find_checkerboard_corners(image: np.ndarray,
                              grid_width: int,
                              grid_height: int,
                              **config) -> DetectionResult:
    """
    Convenience function for one-off detection.

    Example:
        >>> result = find_checkerboard_corners(image, 6, 8)
        >>> if result:
        ...     print(result.corners.shape)   # (48, 2)
    """
    return PatternDetector(**config).detect(image, grid_width, grid_height)
