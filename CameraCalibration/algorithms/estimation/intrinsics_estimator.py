"""
Closed-form initial camera matrix from planar views.

Every view of the checkerboard gives a plane-to-image homography
H = K [r1 r2 t]. Because r1 and r2 are orthonormal, the image of the absolute
conic w = K^-T K^-1 satisfies

    h1^T w h2 = 0        h1^T w h1 = h2^T w h2

With the principal point fixed at the image centre and zero skew, w is
diag(1/fx^2, 1/fy^2, 1) after shifting the principal point to the origin,
so each view contributes two linear equations in (1/fx^2, 1/fy^2). The
equal-norm condition is used in its orthogonality form on the diagonals
d1 = (h1 + h2)/2 and d2 = (h1 - h2)/2.
"""

import numpy as np
from typing import List, Optional, Tuple

from CameraCalibration.core.interfaces import BaseEstimator, EstimationResult, EstimationStatus
from CameraCalibration.core.exceptions import InsufficientData, DegenerateGeometry
from CameraCalibration.core.structures import CorrespondenceSet
from CameraCalibration.algorithms.geometry.homography import estimate_homography
from CameraCalibration.logger import get_logger

logger = get_logger("estimation.intrinsics")


class InitialIntrinsicsConfig:
    """Configuration for the closed-form intrinsics estimate"""

    # Smallest singular value of the stacked system, relative to the largest
    RANK_TOLERANCE = 1e-6


class InitialIntrinsicsEstimator(BaseEstimator):
    """
    Closed-form camera matrix (principal point at the image centre, zero skew).

    Never iterates. The estimate only seeds the nonlinear refiner.
    """

    def __init__(self, **config):
        super().__init__(**config)
        self.config = InitialIntrinsicsConfig()

        for key, value in config.items():
            if hasattr(self.config, key.upper()):
                setattr(self.config, key.upper(), value)

    def validate_input(self, correspondences: CorrespondenceSet,
                       image_size: Tuple[int, int]) -> Tuple[bool, str]:
        """
        Validate correspondences and image size.

        Returns:
            Tuple[bool, str]: (is_valid, error_message)
        """
        if correspondences is None or correspondences.is_empty():
            return False, "No correspondences to estimate intrinsics from"
        width, height = image_size
        if width <= 0 or height <= 0:
            return False, f"Invalid image size: {image_size}"
        return True, ""

    def estimate(self,
                 correspondences: CorrespondenceSet,
                 image_size: Tuple[int, int],
                 aspect_ratio: float = 0.0) -> EstimationResult:
        """
        Estimate the initial camera matrix.

        Args:
            correspondences: Object/image points per view
            image_size: (width, height) in pixels
            aspect_ratio: If > 0, fx/fy is fixed to this ratio

        Returns:
            EstimationResult whose model is the 3x3 camera matrix
        """
        is_valid, error = self.validate_input(correspondences, image_size)
        if not is_valid:
            return EstimationResult(
                success=False,
                status=EstimationStatus.INSUFFICIENT_DATA,
                metadata={'error': error}
            )

        width, height = image_size
        cx, cy = (width - 1) * 0.5, (height - 1) * 0.5

        rows: List[np.ndarray] = []
        rhs: List[float] = []
        used_views = 0

        for position, (obj, img) in enumerate(correspondences):
            H = estimate_homography(obj, img)
            if H is None:
                logger.debug(f"  View {correspondences.image_indices[position]}: "
                             f"degenerate homography, skipped")
                continue

            # Move the principal point to the origin
            H = H.copy()
            H[0] -= H[2] * cx
            H[1] -= H[2] * cy

            h = H[:, 0]
            v = H[:, 1]
            d1 = (h + v) * 0.5
            d2 = (h - v) * 0.5

            norms = [np.linalg.norm(x) for x in (h, v, d1, d2)]
            if min(norms) <= 0:
                continue
            h, v, d1, d2 = h / norms[0], v / norms[1], d1 / norms[2], d2 / norms[3]

            rows.append([h[0] * v[0], h[1] * v[1]])
            rhs.append(-h[2] * v[2])
            rows.append([d1[0] * d2[0], d1[1] * d2[1]])
            rhs.append(-d1[2] * d2[2])
            used_views += 1

        if used_views == 0:
            return EstimationResult(
                success=False,
                status=EstimationStatus.DEGENERATE_CONFIG,
                metadata={'error': "All view homographies are singular"}
            )

        A = np.asarray(rows, dtype=np.float64)
        b = np.asarray(rhs, dtype=np.float64)

        singular_values = np.linalg.svd(A, compute_uv=False)
        if len(singular_values) < 2 or \
                singular_values[-1] <= self.config.RANK_TOLERANCE * singular_values[0]:
            return EstimationResult(
                success=False,
                status=EstimationStatus.DEGENERATE_CONFIG,
                metadata={'error': "Views do not constrain both focal lengths "
                                   "(e.g. all fronto-parallel)",
                          'singular_values': singular_values.tolist()}
            )

        inv_f_sq, residuals, _, _ = np.linalg.lstsq(A, b, rcond=None)
        if not np.all(np.isfinite(inv_f_sq)) or np.any(inv_f_sq <= 0):
            return EstimationResult(
                success=False,
                status=EstimationStatus.DEGENERATE_CONFIG,
                metadata={'error': f"Non-positive focal solution: {inv_f_sq.tolist()}"}
            )

        fx = 1.0 / np.sqrt(inv_f_sq[0])
        fy = 1.0 / np.sqrt(inv_f_sq[1])

        if aspect_ratio > 0:
            tf = (fx + fy) / (aspect_ratio + 1.0)
            fx = aspect_ratio * tf
            fy = tf

        K = np.array([
            [fx, 0, cx],
            [0, fy, cy],
            [0, 0, 1]
        ], dtype=np.float64)

        logger.info(f"Initial intrinsics from {used_views} views: "
                    f"fx={fx:.2f}, fy={fy:.2f}, cx={cx:.2f}, cy={cy:.2f}")

        return EstimationResult(
            success=True,
            status=EstimationStatus.SUCCESS,
            model=K,
            residuals=A @ inv_f_sq - b,
            metadata={'num_views': used_views}
        )


def raise_for_estimation(result: EstimationResult):
    """Turn a failed EstimationResult into the matching CalibrationError"""
    if result.success:
        return
    message = result.metadata.get('error', result.status.value)
    if result.status == EstimationStatus.INSUFFICIENT_DATA:
        raise InsufficientData(message, stage="initial_estimate")
    raise DegenerateGeometry(message, stage="initial_estimate")


def estimate_camera_matrix(correspondences: CorrespondenceSet,
                           image_size: Tuple[int, int],
                           aspect_ratio: float = 0.0,
                           estimator: Optional[InitialIntrinsicsEstimator] = None) -> np.ndarray:
    """
    Closed-form camera matrix, raising on failure.

    Raises:
        InsufficientData: If the correspondence set is empty
        DegenerateGeometry: If the views do not determine the focal lengths
    """
    estimator = estimator or InitialIntrinsicsEstimator()
    result = estimator.estimate(correspondences, image_size, aspect_ratio)
    raise_for_estimation(result)
    return result.model
