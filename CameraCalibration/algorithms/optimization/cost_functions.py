"""
Reprojection cost for intrinsic calibration.

Parameter vector layout:
    [fx, fy, cx, cy, k1, k2, p1, p2, k3, rvec_0, tvec_0, ..., rvec_M-1, tvec_M-1]

A boolean mask marks the entries that the solver may change. With a fixed
aspect ratio fy is not a free parameter: it is tied to fx by fy = fx / aspect.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Tuple

from CameraCalibration.core.structures import CameraModel, Pose, NUM_DIST_COEFFS
from CameraCalibration.algorithms.geometry.projection import (
    project_with_jacobian, JAC_POSE, JAC_INTRINSICS, JAC_DISTORTION
)

NUM_INTRINSICS = 4 + NUM_DIST_COEFFS
POSE_SIZE = 6

FX, FY, CX, CY = 0, 1, 2, 3
K1, K2, P1, P2, K3 = 4, 5, 6, 7, 8


@dataclass
class ParameterLayout:
    """
    Describes the packed parameter vector.

    Attributes:
        num_views: Number of views (poses)
        free: Boolean mask over the full vector
        aspect_ratio: fx / fy when the aspect ratio is fixed, else 0
    """
    num_views: int
    free: np.ndarray
    aspect_ratio: float = 0.0

    @property
    def size(self) -> int:
        return NUM_INTRINSICS + POSE_SIZE * self.num_views

    @property
    def num_free(self) -> int:
        return int(np.count_nonzero(self.free))

    def pose_slice(self, view: int) -> slice:
        start = NUM_INTRINSICS + POSE_SIZE * view
        return slice(start, start + POSE_SIZE)


class ParameterBuilder:
    """Packs and unpacks camera model and poses"""

    @staticmethod
    def build_parameter_vector(camera: CameraModel,
                               poses: List[Pose],
                               fix_aspect_ratio: bool = False,
                               zero_tangential_distortion: bool = False,
                               fix_principal_point: bool = False,
                               fix_k3: bool = False) -> Tuple[np.ndarray, ParameterLayout]:
        """
        Build the parameter vector and its layout.

        Returns:
            (params, layout)
        """
        intrinsics = np.concatenate([
            [camera.fx, camera.fy, camera.cx, camera.cy],
            camera.dist_coeffs
        ])
        params = np.concatenate([intrinsics] + [pose.to_vector() for pose in poses])

        free = np.ones(len(params), dtype=bool)
        aspect_ratio = 0.0
        if fix_aspect_ratio:
            free[FY] = False
            aspect_ratio = camera.fx / camera.fy
        if fix_principal_point:
            free[CX] = free[CY] = False
        if zero_tangential_distortion:
            free[P1] = free[P2] = False
            params[P1] = params[P2] = 0.0
        if fix_k3:
            free[K3] = False

        return params, ParameterLayout(len(poses), free, aspect_ratio)

    @staticmethod
    def unpack_parameters(params: np.ndarray,
                          layout: ParameterLayout) -> Tuple[CameraModel, List[Pose]]:
        fx = params[FX]
        fy = fx / layout.aspect_ratio if layout.aspect_ratio > 0 else params[FY]
        camera = CameraModel.from_intrinsics(fx, fy, params[CX], params[CY],
                                             params[K1:K3 + 1])
        poses = []
        for view in range(layout.num_views):
            block = params[layout.pose_slice(view)]
            poses.append(Pose(block[:3], block[3:]))
        return camera, poses

    @staticmethod
    def update(params: np.ndarray, layout: ParameterLayout, delta: np.ndarray) -> np.ndarray:
        """Apply a step over the free entries, keeping tied entries consistent"""
        updated = params.copy()
        updated[layout.free] += delta
        if layout.aspect_ratio > 0:
            updated[FY] = updated[FX] / layout.aspect_ratio
        return updated


class CalibrationCostFunction:
    """
    Reprojection residuals and their Jacobian over all views.

    Residuals are projected minus observed pixel coordinates, interleaved
    (x, y) per point and concatenated over views in input order.
    """

    def __init__(self, object_points: List[np.ndarray], image_points: List[np.ndarray]):
        if len(object_points) != len(image_points):
            raise ValueError("Object and image point lists differ in length")
        self.object_points = [np.asarray(o, dtype=np.float64).reshape(-1, 3) for o in object_points]
        self.observed = [np.asarray(i, dtype=np.float64).reshape(-1) for i in image_points]
        self.num_residuals = int(sum(len(o) for o in self.observed))

    @property
    def num_points(self) -> int:
        return self.num_residuals // 2

    def compute_residuals(self, params: np.ndarray, layout: ParameterLayout) -> np.ndarray:
        residuals, _ = self._evaluate(params, layout, with_jacobian=False)
        return residuals

    def compute_residuals_and_jacobian(self, params: np.ndarray,
                                       layout: ParameterLayout) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns:
            (residuals (R,), jacobian (R, num_free)) over the free parameters
        """
        return self._evaluate(params, layout, with_jacobian=True)

    def _evaluate(self, params: np.ndarray, layout: ParameterLayout, with_jacobian: bool):
        camera, poses = ParameterBuilder.unpack_parameters(params, layout)

        residuals = np.empty(self.num_residuals)
        jacobian = np.zeros((self.num_residuals, layout.size)) if with_jacobian else None

        row = 0
        for view, (obj, observed, pose) in enumerate(zip(self.object_points, self.observed, poses)):
            projected, view_jac = project_with_jacobian(obj, pose, camera)
            n = len(observed)
            residuals[row:row + n] = projected.reshape(-1) - observed

            if with_jacobian:
                jacobian[row:row + n, layout.pose_slice(view)] = view_jac[:, JAC_POSE]
                jacobian[row:row + n, FX:CY + 1] = view_jac[:, JAC_INTRINSICS]
                jacobian[row:row + n, K1:K3 + 1] = view_jac[:, JAC_DISTORTION]
            row += n

        if not with_jacobian:
            return residuals, None

        if layout.aspect_ratio > 0:
            # fy = fx / aspect
            jacobian[:, FX] += jacobian[:, FY] / layout.aspect_ratio

        return residuals, jacobian[:, layout.free]
