import numpy as np
import cv2
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

NUM_DIST_COEFFS = 5  # k1, k2, p1, p2, k3


@dataclass
class CameraModel:
    """
    Pinhole camera with Brown-Conrady distortion.

    Attributes:
        camera_matrix: 3x3 intrinsic matrix (zero skew)
        dist_coeffs: (5,) distortion vector k1, k2, p1, p2, k3
    """
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray = field(default_factory=lambda: np.zeros(NUM_DIST_COEFFS))

    def __post_init__(self):
        self.camera_matrix = np.asarray(self.camera_matrix, dtype=np.float64).reshape(3, 3)
        dist = np.zeros(NUM_DIST_COEFFS)
        given = np.asarray(self.dist_coeffs, dtype=np.float64).ravel()
        dist[:min(len(given), NUM_DIST_COEFFS)] = given[:NUM_DIST_COEFFS]
        self.dist_coeffs = dist

    @classmethod
    def from_intrinsics(cls, fx: float, fy: float, cx: float, cy: float,
                        dist_coeffs: Optional[np.ndarray] = None) -> "CameraModel":
        K = np.array([[fx, 0, cx],
                      [0, fy, cy],
                      [0, 0, 1]], dtype=np.float64)
        if dist_coeffs is None:
            return cls(K)
        return cls(K, dist_coeffs)

    @classmethod
    def with_zero_distortion(cls, camera_matrix: np.ndarray) -> "CameraModel":
        return cls(camera_matrix)

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])

    def copy(self) -> "CameraModel":
        return CameraModel(self.camera_matrix.copy(), self.dist_coeffs.copy())

    def __repr__(self) -> str:
        return (f"CameraModel(fx={self.fx:.2f}, fy={self.fy:.2f}, "
                f"cx={self.cx:.2f}, cy={self.cy:.2f}, "
                f"dist={np.array2string(self.dist_coeffs, precision=4)})")


@dataclass
class Pose:
    """Rotation (Rodrigues vector) and translation of the pattern frame in the camera frame"""
    rvec: np.ndarray
    tvec: np.ndarray

    def __post_init__(self):
        self.rvec = np.asarray(self.rvec, dtype=np.float64).reshape(3)
        self.tvec = np.asarray(self.tvec, dtype=np.float64).reshape(3)

    @classmethod
    def from_matrix(cls, R: np.ndarray, t: np.ndarray) -> "Pose":
        rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=np.float64))
        return cls(rvec, t)

    def rotation_matrix(self) -> np.ndarray:
        R, _ = cv2.Rodrigues(self.rvec.reshape(3, 1))
        return R

    def to_vector(self) -> np.ndarray:
        return np.concatenate([self.rvec, self.tvec])


def _freeze(*arrays: np.ndarray):
    for array in arrays:
        array.setflags(write=False)


@dataclass(frozen=True)
class CalibrationReport:
    """
    Terminal output of a calibration session.

    Attributes:
        camera_model: Converged intrinsics and distortion
        rms_error: sqrt(total squared reprojection error / total points), pixels
        poses: One pose per accepted image
        per_image_errors: RMS reprojection error per accepted image
        accepted_indices: Input indices of images used for calibration
        rejected_indices: Input indices of images dropped by detection
        image_size: (width, height) in pixels
    """
    camera_model: CameraModel
    rms_error: float
    poses: Tuple[Pose, ...] = ()
    per_image_errors: Tuple[float, ...] = ()
    accepted_indices: Tuple[int, ...] = ()
    rejected_indices: Tuple[int, ...] = ()
    image_size: Tuple[int, int] = (0, 0)

    def __post_init__(self):
        # Own read-only copies, so nothing outside can change a finished report
        model = self.camera_model.copy()
        _freeze(model.camera_matrix, model.dist_coeffs)
        poses = []
        for pose in self.poses:
            frozen = Pose(pose.rvec.copy(), pose.tvec.copy())
            _freeze(frozen.rvec, frozen.tvec)
            poses.append(frozen)

        object.__setattr__(self, 'camera_model', model)
        object.__setattr__(self, 'poses', tuple(poses))
        object.__setattr__(self, 'per_image_errors', tuple(float(e) for e in self.per_image_errors))
        object.__setattr__(self, 'accepted_indices', tuple(self.accepted_indices))
        object.__setattr__(self, 'rejected_indices', tuple(self.rejected_indices))
        object.__setattr__(self, 'image_size', tuple(self.image_size))

    @property
    def camera_matrix(self) -> np.ndarray:
        return self.camera_model.camera_matrix

    @property
    def dist_coeffs(self) -> np.ndarray:
        return self.camera_model.dist_coeffs

    @property
    def num_accepted(self) -> int:
        return len(self.accepted_indices)

    @property
    def num_rejected(self) -> int:
        return len(self.rejected_indices)

    def summary_lines(self) -> List[str]:
        lines = [
            f"Accepted images: {self.num_accepted}, rejected: {self.num_rejected}",
            f"RMS reprojection error: {self.rms_error:.4f}px",
            f"fx={self.camera_model.fx:.3f} fy={self.camera_model.fy:.3f} "
            f"cx={self.camera_model.cx:.3f} cy={self.camera_model.cy:.3f}",
            f"Distortion: {np.array2string(self.dist_coeffs, precision=6)}",
        ]
        return lines
