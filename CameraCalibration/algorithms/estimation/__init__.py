from .intrinsics_estimator import (
    InitialIntrinsicsEstimator,
    InitialIntrinsicsConfig,
    estimate_camera_matrix,
    raise_for_estimation
)

__all__ = [
    'InitialIntrinsicsEstimator',
    'InitialIntrinsicsConfig',
    'estimate_camera_matrix',
    'raise_for_estimation',
]
