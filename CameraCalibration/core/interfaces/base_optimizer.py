"""
Base interface for optimization algorithms.

This defines the contract for algorithms that refine estimates through
iterative optimization (calibration refinement).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum
import numpy as np
from CameraCalibration.logger import get_logger

logger = get_logger("core.interfaces")


class OptimizationStatus(Enum):
    """Status codes for optimization results"""
    SUCCESS = "success"
    MAX_ITERATIONS = "max_iterations_reached"
    CONVERGED = "converged"
    NUMERICAL_ERROR = "numerical_error"


@dataclass
class OptimizationResult:
    """
    Result of an optimization algorithm.

    Attributes:
        success: Whether optimization succeeded
        status: Status code from OptimizationStatus
        optimized_params: Optimized parameter vector
        initial_cost: Cost before optimization
        final_cost: Cost after optimization
        num_iterations: Number of iterations performed
        residuals: Final residuals
        convergence_history: History of cost values per iteration
        runtime: Optimization runtime in seconds
        metadata: Additional algorithm-specific information
    """
    success: bool
    status: OptimizationStatus
    optimized_params: Optional[Any] = None
    initial_cost: float = 0.0
    final_cost: float = 0.0
    num_iterations: int = 0
    residuals: Optional[np.ndarray] = None
    convergence_history: List[float] = field(default_factory=list)
    runtime: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


class BaseOptimizer(ABC):
    """
    Abstract base class for optimization algorithms.

    Holds the iteration state and the shared convergence/termination rules;
    subclasses implement the update loop.

    Examples:
        - CalibrationRefiner
    """

    def __init__(self,
                 max_iterations: int = 100,
                 tolerance: float = 1e-6,
                 verbose: bool = False,
                 **config):
        """
        Initialize optimizer with configuration.

        Args:
            max_iterations: Maximum number of iterations
            tolerance: Convergence tolerance on the relative cost decrease
            verbose: Whether to log every iteration at INFO level
            **config: Algorithm-specific configuration
        """
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.verbose = verbose

        # State
        self._current_iteration = 0
        self._current_cost = float('inf')
        self._converged = False

    @abstractmethod
    def optimize(self, *args, **kwargs) -> OptimizationResult:
        """
        Perform optimization.

        Returns:
            OptimizationResult: Optimization result with optimized parameters
        """
        pass

    @abstractmethod
    def validate_input(self, *args, **kwargs) -> tuple[bool, str]:
        """
        Validate input before optimization.

        Returns:
            Tuple[bool, str]: (is_valid, error_message)
        """
        pass

    # ========================================================================
    # CONVERGENCE
    # ========================================================================

    def check_convergence(self,
                          current_cost: float,
                          previous_cost: float) -> bool:
        """
        Check if optimization has converged.

        Args:
            current_cost: Cost at current iteration
            previous_cost: Cost at previous iteration

        Returns:
            bool: True if the relative decrease fell below tolerance
        """
        if previous_cost == 0:
            return True

        relative_change = (previous_cost - current_cost) / previous_cost
        return relative_change < self.tolerance

    def should_terminate(self) -> tuple[bool, OptimizationStatus]:
        """
        Check if optimization should terminate.

        Returns:
            Tuple[bool, OptimizationStatus]: (should_stop, reason)
        """
        if self._converged:
            return True, OptimizationStatus.CONVERGED

        if self._current_iteration >= self.max_iterations:
            return True, OptimizationStatus.MAX_ITERATIONS

        if np.isnan(self._current_cost) or np.isinf(self._current_cost):
            return True, OptimizationStatus.NUMERICAL_ERROR

        return False, OptimizationStatus.SUCCESS

    def _notify_iteration(self, iteration: int, cost: float):
        if self.verbose:
            logger.info(f"Iteration {iteration}: cost = {cost:.6f}")
        else:
            logger.debug(f"Iteration {iteration}: cost = {cost:.6f}")

    def reset(self):
        """Reset optimizer state"""
        self._current_iteration = 0
        self._current_cost = float('inf')
        self._converged = False

    def get_algorithm_name(self) -> str:
        return self.__class__.__name__

    def __repr__(self) -> str:
        return (f"{self.get_algorithm_name()}("
                f"max_iter={self.max_iterations}, "
                f"tol={self.tolerance})")
