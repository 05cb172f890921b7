"""
Pinhole projection with Brown-Conrady distortion, with analytic Jacobians.
"""

import numpy as np
import cv2
from typing import List, Tuple

from CameraCalibration.core.structures import CameraModel, Pose

# Column layout of the Jacobian returned by cv2.projectPoints for 5 coefficients
JAC_POSE = slice(0, 6)        # rvec (3), tvec (3)
JAC_INTRINSICS = slice(6, 10)  # fx, fy, cx, cy
JAC_DISTORTION = slice(10, 15)  # k1, k2, p1, p2, k3


def project_points(object_points: np.ndarray,
                   pose: Pose,
                   camera: CameraModel) -> np.ndarray:
    """
    Project pattern points into the image.

    Returns:
        (N, 2) float64 pixel coordinates
    """
    projected, _ = cv2.projectPoints(
        np.asarray(object_points, dtype=np.float64).reshape(-1, 3),
        pose.rvec, pose.tvec,
        camera.camera_matrix, camera.dist_coeffs
    )
    return projected.reshape(-1, 2)


def project_with_jacobian(object_points: np.ndarray,
                          pose: Pose,
                          camera: CameraModel) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project pattern points and differentiate the projection.

    Args:
        object_points: (N, 3) pattern points
        pose: View pose
        camera: Intrinsics and distortion

    Returns:
        (projected (N, 2), jacobian (2N, 15)); jacobian rows alternate x, y
        per point and columns follow JAC_POSE, JAC_INTRINSICS, JAC_DISTORTION
    """
    projected, jacobian = cv2.projectPoints(
        np.asarray(object_points, dtype=np.float64).reshape(-1, 3),
        pose.rvec, pose.tvec,
        camera.camera_matrix, camera.dist_coeffs
    )
    return projected.reshape(-1, 2), jacobian


def reprojection_errors(object_points: List[np.ndarray],
                        image_points: List[np.ndarray],
                        poses: List[Pose],
                        camera: CameraModel) -> Tuple[float, np.ndarray]:
    """
    RMS reprojection error overall and per view.

    Returns:
        (sqrt(total squared error / total points), (M,) per-view RMS)
    """
    total_sq = 0.0
    total_points = 0
    per_view = np.zeros(len(poses))
    for k, (obj, img, pose) in enumerate(zip(object_points, image_points, poses)):
        diff = project_points(obj, pose, camera) - np.asarray(img, dtype=np.float64).reshape(-1, 2)
        sq = float(np.sum(diff * diff))
        per_view[k] = np.sqrt(sq / len(obj))
        total_sq += sq
        total_points += len(obj)
    rms = np.sqrt(total_sq / total_points) if total_points else 0.0
    return float(rms), per_view
