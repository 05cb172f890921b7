"""
Synthetic checkerboard views with known ground truth.

Images are rendered analytically: every sample is mapped back onto the board
plane through the inverse homography and shaded by the square it lands in,
with supersampling for anti-aliased edges. Pixel centres sit at integer
coordinates, matching cv2.projectPoints.
"""

import numpy as np
import cv2
from scipy.spatial.transform import Rotation

from CameraCalibration.core.structures import CorrespondenceSet, PatternGeometry, Pose

IMAGE_SIZE = (640, 480)
GEOMETRY = PatternGeometry(6, 8, 22.5)
TRUE_K = np.array([
    [800.0, 0, 320.0],
    [0, 800.0, 240.0],
    [0, 0, 1]
])

DARK = 30
LIGHT = 220


def make_pose(geometry: PatternGeometry, angles_deg, offset_xy=(0.0, 0.0), depth=580.0) -> Pose:
    """Pose placing the board centre at (ox, oy, depth) in the camera frame"""
    R = Rotation.from_euler('xyz', angles_deg, degrees=True).as_matrix()
    center = np.array([(geometry.width - 1) * geometry.side_length / 2.0,
                       (geometry.height - 1) * geometry.side_length / 2.0,
                       0.0])
    t = np.array([offset_xy[0], offset_xy[1], depth]) - R @ center
    return Pose.from_matrix(R, t)


def random_poses(geometry: PatternGeometry, count: int, seed: int = 42,
                 max_tilt: float = 25.0, max_roll: float = 8.0):
    """Well-spread, fully visible board poses"""
    rng = np.random.RandomState(seed)
    poses = []
    for _ in range(count):
        angles = [rng.uniform(-max_tilt, max_tilt),
                  rng.uniform(-max_tilt, max_tilt),
                  rng.uniform(-max_roll, max_roll)]
        offset = rng.uniform(-15.0, 15.0, size=2)
        depth = rng.uniform(560.0, 620.0)
        poses.append(make_pose(geometry, angles, offset, depth))
    return poses


def project_corners(geometry: PatternGeometry, pose: Pose, camera_matrix=TRUE_K,
                    dist_coeffs=None) -> np.ndarray:
    """Ground-truth corner positions in row-major template order"""
    dist = np.zeros(5) if dist_coeffs is None else np.asarray(dist_coeffs, dtype=np.float64)
    projected, _ = cv2.projectPoints(geometry.object_points(), pose.rvec, pose.tvec,
                                     np.asarray(camera_matrix, dtype=np.float64), dist)
    return projected.reshape(-1, 2)


def render_checkerboard(geometry: PatternGeometry, pose: Pose,
                        camera_matrix=TRUE_K, image_size=IMAGE_SIZE,
                        supersample: int = 4, color: bool = True) -> np.ndarray:
    """
    Render the board through a distortion-free pinhole camera.

    The board has (width+1) x (height+1) squares around the internal corners;
    the square touching the template origin diagonally at (-s, -s) is dark.
    Everything off the board is light.

    Returns:
        HxWx3 BGR uint8 image (HxW if color is False)
    """
    width, height = image_size
    s = geometry.side_length
    R = pose.rotation_matrix()
    H = np.asarray(camera_matrix, dtype=np.float64) @ np.column_stack([R[:, 0], R[:, 1], pose.tvec])
    H_inv = np.linalg.inv(H)

    xs, ys = np.meshgrid(np.arange(width, dtype=np.float64),
                         np.arange(height, dtype=np.float64))
    offsets = (np.arange(supersample) + 0.5) / supersample - 0.5
    accumulator = np.zeros((height, width))

    for dy in offsets:
        for dx in offsets:
            u = xs + dx
            v = ys + dy
            X = H_inv[0, 0] * u + H_inv[0, 1] * v + H_inv[0, 2]
            Y = H_inv[1, 0] * u + H_inv[1, 1] * v + H_inv[1, 2]
            W = H_inv[2, 0] * u + H_inv[2, 1] * v + H_inv[2, 2]
            bx = X / W
            by = Y / W

            on_board = ((bx >= -s) & (bx < geometry.width * s) &
                        (by >= -s) & (by < geometry.height * s))
            parity = (np.floor(bx / s) + np.floor(by / s)) % 2
            dark = on_board & (parity == 0)
            accumulator += np.where(dark, DARK, LIGHT)

    gray = np.round(accumulator / (supersample * supersample)).astype(np.uint8)
    if color:
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
    return gray


def synthetic_correspondences(geometry: PatternGeometry, poses, camera_matrix=TRUE_K,
                              dist_coeffs=None, noise: float = 0.0, seed: int = 0):
    """CorrespondenceSet from exact (optionally noisy) projections"""
    rng = np.random.RandomState(seed)
    template = geometry.object_points()
    correspondences = CorrespondenceSet()
    for index, pose in enumerate(poses):
        points = project_corners(geometry, pose, camera_matrix, dist_coeffs)
        if noise > 0:
            points = points + rng.normal(0, noise, points.shape)
        correspondences.append(template, points, index)
    return correspondences
