"""
Base interface for closed-form estimation algorithms.

This defines the contract for algorithms that estimate a model directly from
correspondences without iterating (initial camera matrix).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum
import numpy as np


class EstimationStatus(Enum):
    """Status codes for estimation results"""
    SUCCESS = "success"
    INSUFFICIENT_DATA = "insufficient_data"
    DEGENERATE_CONFIG = "degenerate_configuration"


@dataclass
class EstimationResult:
    """
    Result of an estimation algorithm.

    Attributes:
        success: Whether estimation succeeded
        status: Status code from EstimationStatus
        model: Estimated model (e.g., camera matrix)
        residuals: Residuals of the linear system, if computed
        metadata: Additional algorithm-specific information
    """
    success: bool
    status: EstimationStatus
    model: Optional[Any] = None
    residuals: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


class BaseEstimator(ABC):
    """
    Abstract base class for closed-form estimators.

    Examples:
        - InitialIntrinsicsEstimator
    """

    def __init__(self, **config):
        self.config = config

    @abstractmethod
    def estimate(self, *args, **kwargs) -> EstimationResult:
        """
        Perform estimation.

        Returns:
            EstimationResult: Estimation result with model and metadata
        """
        pass

    @abstractmethod
    def validate_input(self, *args, **kwargs) -> Tuple[bool, str]:
        """
        Validate input data before estimation.

        Returns:
            Tuple[bool, str]: (is_valid, error_message)
        """
        pass

    def get_algorithm_name(self) -> str:
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"{self.get_algorithm_name()}(config={self.config})"
