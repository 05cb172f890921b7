"""
Plane-to-image homographies and planar pose recovery.
"""

import numpy as np
import cv2
from typing import Optional, Tuple

from CameraCalibration.core.structures import Pose


def normalization_transform(points: np.ndarray) -> np.ndarray:
    """
    Hartley normalization: translate the centroid to the origin and scale so
    the mean distance from it is sqrt(2).

    Args:
        points: (N, 2) points

    Returns:
        3x3 similarity transform (identity scale if the points coincide)
    """
    centroid = points.mean(axis=0)
    mean_dist = np.mean(np.linalg.norm(points - centroid, axis=1))
    scale = np.sqrt(2.0) / mean_dist if mean_dist > 0 else 1.0
    return np.array([
        [scale, 0, -scale * centroid[0]],
        [0, scale, -scale * centroid[1]],
        [0, 0, 1]
    ], dtype=np.float64)


def estimate_homography(object_points: np.ndarray,
                        image_points: np.ndarray) -> Optional[np.ndarray]:
    """
    Homography mapping the pattern plane (X, Y) to image pixels.

    Normalized DLT: both point sets are Hartley-normalized, the 2N x 9 design
    matrix is solved by SVD, and the result is denormalized and scaled so
    H[2, 2] = 1.

    Args:
        object_points: (N, 3) or (N, 2) pattern points (Z ignored)
        image_points: (N, 2) pixel coordinates

    Returns:
        3x3 float64 homography, or None if fewer than 4 points are given or
        the points do not determine a unique homography
    """
    src = np.asarray(object_points, dtype=np.float64)[:, :2]
    dst = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    n = len(src)
    if n < 4 or len(dst) != n:
        return None

    T_src = normalization_transform(src)
    T_dst = normalization_transform(dst)
    src_n = src @ T_src[:2, :2].T + T_src[:2, 2]
    dst_n = dst @ T_dst[:2, :2].T + T_dst[:2, 2]

    x, y = src_n[:, 0], src_n[:, 1]
    u, v = dst_n[:, 0], dst_n[:, 1]
    zeros, ones = np.zeros(n), np.ones(n)

    A = np.empty((2 * n, 9))
    A[0::2] = np.column_stack([x, y, ones, zeros, zeros, zeros, -u * x, -u * y, -u])
    A[1::2] = np.column_stack([zeros, zeros, zeros, x, y, ones, -v * x, -v * y, -v])

    _, S, Vt = np.linalg.svd(A)
    # Rank 8 is required; collinear points leave a larger null space
    if S[7] <= 1e-10 * S[0]:
        return None

    H_n = Vt[-1].reshape(3, 3)
    H = np.linalg.inv(T_dst) @ H_n @ T_src
    if abs(H[2, 2]) < 1e-12:
        return None
    return H / H[2, 2]


def pose_from_homography(H: np.ndarray, camera_matrix: np.ndarray) -> Pose:
    """
    Decompose a plane homography into the pattern pose.

    With K^-1 H = lambda [r1 r2 t], the columns are scaled to unit rotation
    columns, r3 = r1 x r2 completes the frame, and the rotation is projected
    onto SO(3) by SVD. The sign is chosen so the pattern lies in front of the
    camera (t_z > 0).

    Args:
        H: 3x3 plane-to-image homography
        camera_matrix: 3x3 intrinsic matrix

    Returns:
        Pose of the pattern frame in the camera frame
    """
    M = np.linalg.inv(camera_matrix) @ H
    h1, h2, h3 = M[:, 0], M[:, 1], M[:, 2]

    scale = 1.0 / np.linalg.norm(h1)
    r1 = h1 * scale
    r2 = h2 * scale
    t = h3 * scale
    if t[2] < 0:
        r1, r2, t = -r1, -r2, -t
    r3 = np.cross(r1, r2)

    U, _, Vt = np.linalg.svd(np.column_stack([r1, r2, r3]))
    R = U @ Vt
    if np.linalg.det(R) < 0:
        R = U @ np.diag([1.0, 1.0, -1.0]) @ Vt

    return Pose.from_matrix(R, t)


def undistort_image_points(image_points: np.ndarray,
                           camera_matrix: np.ndarray,
                           dist_coeffs: np.ndarray) -> np.ndarray:
    """Remove lens distortion, keeping pixel coordinates of the same camera matrix"""
    pts = np.asarray(image_points, dtype=np.float64).reshape(-1, 1, 2)
    undistorted = cv2.undistortPoints(pts, camera_matrix, dist_coeffs, P=camera_matrix)
    return undistorted.reshape(-1, 2)


def initial_pose(object_points: np.ndarray,
                 image_points: np.ndarray,
                 camera_matrix: np.ndarray,
                 dist_coeffs: Optional[np.ndarray] = None) -> Tuple[Optional[Pose], Optional[np.ndarray]]:
    """
    Pose seed for one view from its plane homography.

    Args:
        object_points: (N, 3) pattern points on Z = 0
        image_points: (N, 2) detected corners
        camera_matrix: Current 3x3 intrinsic matrix
        dist_coeffs: Current distortion; image points are undistorted first
            when any coefficient is non-zero

    Returns:
        (Pose, H) or (None, None) if the homography is degenerate
    """
    points = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    if dist_coeffs is not None and np.any(np.asarray(dist_coeffs) != 0):
        points = undistort_image_points(points, camera_matrix, dist_coeffs)

    H = estimate_homography(object_points, points)
    if H is None:
        return None, None
    return pose_from_homography(H, camera_matrix), H
