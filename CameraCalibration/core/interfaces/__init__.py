"""
Core interfaces for dependency injection.

This module defines the abstract base classes (contracts) that all
implementations must follow, so image sources, estimators and optimizers
can be swapped or mocked in tests.
"""

# Provider interface
from .base_provider import IImageProvider

# Estimator interfaces
from .base_estimator import (
    BaseEstimator,
    EstimationResult,
    EstimationStatus
)

# Optimizer interfaces
from .base_optimizer import (
    BaseOptimizer,
    OptimizationResult,
    OptimizationStatus
)


__all__ = [
    # Provider
    'IImageProvider',

    # Estimator
    'BaseEstimator',
    'EstimationResult',
    'EstimationStatus',

    # Optimizer
    'BaseOptimizer',
    'OptimizationResult',
    'OptimizationStatus',
]
