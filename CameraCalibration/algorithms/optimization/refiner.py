"""
Nonlinear Calibration Refinement

Jointly refines intrinsics, distortion and per-view poses by minimizing the
total squared reprojection error with Levenberg-Marquardt.

Solver:
- Normal equations with Marquardt scaling: (J^T J + lambda diag(J^T J)) dx = -J^T r
- Cholesky solve of the damped system
- lambda x10 on a rejected step, /10 on an accepted one
- Stops when the relative cost decrease falls below the tolerance, the
  scaled gradient vanishes, the residual reaches numerical zero, or the
  iteration cap is hit
"""

import time
import numpy as np
from dataclasses import dataclass, field
from typing import List, Tuple, Union
from scipy.linalg import cho_factor, cho_solve, LinAlgError

from CameraCalibration.config import RefinementConfig, FULL_PASS
from CameraCalibration.core.interfaces import BaseOptimizer, OptimizationResult, OptimizationStatus
from CameraCalibration.core.exceptions import (
    InsufficientData, DegenerateGeometry, ConvergenceFailure, IllConditioned
)
from CameraCalibration.core.structures import CameraModel, CorrespondenceSet, Pose
from CameraCalibration.algorithms.estimation import estimate_camera_matrix
from CameraCalibration.algorithms.geometry.homography import initial_pose
from CameraCalibration.algorithms.geometry.projection import reprojection_errors
from CameraCalibration.logger import get_logger

from .cost_functions import CalibrationCostFunction, ParameterBuilder, ParameterLayout

logger = get_logger("optimization.refiner")

STAGE = "refinement"


class RefinerConfig:
    """Configuration for the Levenberg-Marquardt refiner"""

    # Damping
    INITIAL_DAMPING = 1e-3
    DAMPING_INCREASE = 10.0
    DAMPING_DECREASE = 10.0
    MIN_DAMPING = 1e-15

    # Convergence
    GRADIENT_TOLERANCE = 1e-12   # Max |g_j| / (|J_j| |r|)
    ZERO_COST_PER_RESIDUAL = 1e-18  # Squared pixels
    STALL_TOLERANCE = 1e-8       # Predicted relative decrease of a full Gauss-Newton step

    # Conditioning
    RANK_TOLERANCE = 1e-10       # Smallest / largest singular value of the scaled Jacobian

    MIN_IMAGES = 2


@dataclass
class RefinementResult:
    """
    Output of one refinement run.

    Attributes:
        camera_model: Refined intrinsics and distortion
        poses: Refined pose per view, input order
        rms_error: sqrt(total squared error / total points), pixels
        per_image_errors: RMS reprojection error per view
        optimization: Solver statistics
    """
    camera_model: CameraModel
    poses: List[Pose]
    rms_error: float
    per_image_errors: np.ndarray
    optimization: OptimizationResult = field(repr=False, default=None)


class CalibrationRefiner(BaseOptimizer):
    """
    Levenberg-Marquardt refinement of a camera model over planar views.

    Raises instead of returning a failed result: IllConditioned when the
    parameters are not observable from the views, ConvergenceFailure when the
    solver cannot reduce a cost whose gradient is still significant.
    """

    def __init__(self, **config):
        """
        Initialize refiner.

        Args:
            **config: Overrides for RefinerConfig and BaseOptimizer options
        """
        super().__init__(**config)
        self.config = RefinerConfig()
        self.max_damping_attempts = 10

        for key, value in config.items():
            if hasattr(self.config, key.upper()):
                setattr(self.config, key.upper(), value)

    def get_algorithm_name(self) -> str:
        return "CalibrationRefiner"

    def validate_input(self, correspondences: CorrespondenceSet,
                       image_size: Tuple[int, int]) -> Tuple[bool, str]:
        """Validate input for refinement"""
        if correspondences is None or len(correspondences) < self.config.MIN_IMAGES:
            count = 0 if correspondences is None else len(correspondences)
            return False, f"Need at least {self.config.MIN_IMAGES} images, got {count}"
        width, height = image_size
        if width <= 0 or height <= 0:
            return False, f"Invalid image size: {image_size}"
        return True, ""

    def optimize(self, correspondences: CorrespondenceSet,
                 initial: Union[CameraModel, np.ndarray, None],
                 image_size: Tuple[int, int],
                 config: RefinementConfig = FULL_PASS) -> OptimizationResult:
        """Run refinement and return the solver statistics only"""
        return self.refine(correspondences, initial, image_size, config).optimization

    # ========================================================================
    # SEEDING
    # ========================================================================

    def _seed_camera(self, correspondences: CorrespondenceSet,
                     initial: Union[CameraModel, np.ndarray, None],
                     image_size: Tuple[int, int],
                     config: RefinementConfig) -> CameraModel:
        if isinstance(initial, CameraModel):
            seed = initial.copy()
        elif initial is not None:
            seed = CameraModel(initial)
        else:
            seed = None

        if config.use_intrinsic_guess and seed is not None:
            if seed.fx <= 0 or seed.fy <= 0:
                raise ValueError(f"Intrinsic guess needs positive focal lengths, got {seed}")
        else:
            aspect = 0.0
            if config.fix_aspect_ratio and seed is not None and seed.fx > 0 and seed.fy > 0:
                aspect = seed.fx / seed.fy
            seed = CameraModel(estimate_camera_matrix(correspondences, image_size, aspect))

        if config.zero_tangential_distortion:
            seed.dist_coeffs[2:4] = 0.0
        return seed

    def _seed_poses(self, correspondences: CorrespondenceSet, camera: CameraModel) -> List[Pose]:
        poses = []
        for position, (obj, img) in enumerate(correspondences):
            pose, _ = initial_pose(obj, img, camera.camera_matrix, camera.dist_coeffs)
            if pose is None:
                raise DegenerateGeometry("Homography of the view is degenerate",
                                         stage=STAGE,
                                         image_index=correspondences.image_indices[position])
            poses.append(pose)
        return poses

    # ========================================================================
    # MAIN
    # ========================================================================

    def refine(self,
               correspondences: CorrespondenceSet,
               initial: Union[CameraModel, np.ndarray, None],
               image_size: Tuple[int, int],
               config: RefinementConfig = FULL_PASS) -> RefinementResult:
        """
        Refine a camera model.

        Args:
            correspondences: Object/image points of at least two views
            initial: Seed camera model or 3x3 camera matrix. Ignored (except
                for its aspect ratio) when config.use_intrinsic_guess is False
            image_size: (width, height) in pixels
            config: Constraint set and solver controls

        Returns:
            RefinementResult

        Raises:
            InsufficientData: Fewer than two views
            DegenerateGeometry: A view homography cannot be decomposed
            IllConditioned: Rank-deficient Jacobian or unfactorisable system
            ConvergenceFailure: Stuck with a significant gradient, or non-finite cost
        """
        start_time = time.time()
        self.reset()
        self.max_iterations = config.max_iterations
        self.tolerance = config.tolerance
        self.max_damping_attempts = config.max_damping_attempts

        is_valid, error = self.validate_input(correspondences, image_size)
        if not is_valid:
            raise InsufficientData(error, stage=STAGE)

        camera = self._seed_camera(correspondences, initial, image_size, config)
        poses = self._seed_poses(correspondences, camera)

        params, layout = ParameterBuilder.build_parameter_vector(
            camera, poses,
            fix_aspect_ratio=config.fix_aspect_ratio,
            zero_tangential_distortion=config.zero_tangential_distortion,
            fix_principal_point=config.fix_principal_point,
            fix_k3=config.fix_k3
        )
        cost_function = CalibrationCostFunction(correspondences.object_points,
                                                correspondences.image_points)

        logger.debug(f"Refining {layout.num_free} free parameters over "
                     f"{len(correspondences)} views, {cost_function.num_points} points")

        params, status, history, damping = self._levenberg_marquardt(params, layout, cost_function)

        camera, poses = ParameterBuilder.unpack_parameters(params, layout)
        rms, per_view = reprojection_errors(correspondences.object_points,
                                            correspondences.image_points, poses, camera)
        final_residuals = cost_function.compute_residuals(params, layout)

        optimization = OptimizationResult(
            success=True,
            status=status,
            optimized_params=params,
            initial_cost=history[0],
            final_cost=history[-1],
            num_iterations=self._current_iteration,
            residuals=final_residuals,
            convergence_history=history,
            runtime=time.time() - start_time,
            metadata={
                'algorithm': self.get_algorithm_name(),
                'num_views': len(correspondences),
                'num_free_parameters': layout.num_free,
                'final_damping': damping,
                'rms_error': rms,
            }
        )

        if status == OptimizationStatus.MAX_ITERATIONS:
            logger.warning(f"Refinement stopped at the iteration cap ({config.max_iterations}), "
                           f"RMS {rms:.4f}px")
        logger.debug(f"Refinement done in {self._current_iteration} iterations: RMS {rms:.4f}px")

        return RefinementResult(
            camera_model=camera,
            poses=poses,
            rms_error=rms,
            per_image_errors=per_view,
            optimization=optimization
        )

    def _check_conditioning(self, jacobian: np.ndarray):
        column_norms = np.linalg.norm(jacobian, axis=0)
        if np.any(column_norms == 0) or not np.all(np.isfinite(column_norms)):
            raise IllConditioned("A free parameter does not affect any residual", stage=STAGE)

        singular_values = np.linalg.svd(jacobian / column_norms, compute_uv=False)
        if singular_values[-1] <= self.config.RANK_TOLERANCE * singular_values[0]:
            raise IllConditioned(
                f"Jacobian is rank deficient (condition {singular_values[0] / max(singular_values[-1], 1e-300):.3e}); "
                f"the views do not constrain all free parameters",
                stage=STAGE
            )

    def _levenberg_marquardt(self, params: np.ndarray, layout: ParameterLayout,
                             cost_function: CalibrationCostFunction):
        residuals, jacobian = cost_function.compute_residuals_and_jacobian(params, layout)
        cost = float(residuals @ residuals)
        if not np.isfinite(cost):
            raise ConvergenceFailure("Initial reprojection cost is not finite", stage=STAGE)

        self._check_conditioning(jacobian)

        history = [cost]
        self._current_cost = cost
        damping = self.config.INITIAL_DAMPING
        zero_cost = self.config.ZERO_COST_PER_RESIDUAL * cost_function.num_residuals

        while True:
            if cost <= zero_cost:
                self._converged = True

            gradient = jacobian.T @ residuals
            normal = jacobian.T @ jacobian
            diagonal = np.diag(normal).copy()

            if not self._converged:
                scale = np.sqrt(diagonal) * np.sqrt(cost)
                if np.max(np.abs(gradient) / scale) < self.config.GRADIENT_TOLERANCE:
                    self._converged = True

            stop, status = self.should_terminate()
            if stop:
                if status == OptimizationStatus.NUMERICAL_ERROR:
                    raise ConvergenceFailure("Reprojection cost became non-finite", stage=STAGE)
                return params, status, history, damping

            accepted = False
            for _ in range(self.max_damping_attempts):
                damped = normal + np.diag(damping * diagonal)
                try:
                    factor = cho_factor(damped)
                except LinAlgError:
                    raise IllConditioned("Damped normal equations are not positive definite",
                                         stage=STAGE)
                delta = -cho_solve(factor, gradient)

                candidate = ParameterBuilder.update(params, layout, delta)
                candidate_residuals = cost_function.compute_residuals(candidate, layout)
                candidate_cost = float(candidate_residuals @ candidate_residuals)

                if np.isfinite(candidate_cost) and candidate_cost < cost:
                    accepted = True
                    damping = max(damping / self.config.DAMPING_DECREASE, self.config.MIN_DAMPING)
                    break
                damping *= self.config.DAMPING_INCREASE

            if not accepted:
                if self._stalled(normal, gradient, cost):
                    self._converged = True
                    continue
                raise ConvergenceFailure(
                    f"No step reduced the cost after {self.max_damping_attempts} damping attempts "
                    f"(cost {cost:.6e}, damping {damping:.1e})",
                    stage=STAGE
                )

            previous_cost = cost
            params = candidate
            residuals, jacobian = cost_function.compute_residuals_and_jacobian(params, layout)
            cost = float(residuals @ residuals)
            history.append(cost)

            self._current_iteration += 1
            self._current_cost = cost
            self._notify_iteration(self._current_iteration, cost)

            if self.check_convergence(cost, previous_cost):
                self._converged = True

    def _stalled(self, normal: np.ndarray, gradient: np.ndarray, cost: float) -> bool:
        """
        True when even the undamped Gauss-Newton step predicts a negligible
        relative decrease, i.e. the run sits at the minimum to within
        floating-point resolution.
        """
        if cost <= 0:
            return True
        try:
            factor = cho_factor(normal)
        except LinAlgError:
            return False
        predicted = float(gradient @ cho_solve(factor, gradient))
        return predicted / cost < self.config.STALL_TOLERANCE
