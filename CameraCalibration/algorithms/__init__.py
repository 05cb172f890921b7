"""
Calibration algorithms: pattern detection, correspondence assembly,
closed-form estimation and nonlinear refinement.
"""

from .detection import PatternDetector, PatternDetectorConfig, find_checkerboard_corners
from .correspondence import CorrespondenceBuilder
from .estimation import InitialIntrinsicsEstimator, estimate_camera_matrix
from .optimization import CalibrationRefiner, RefinementResult

__all__ = [
    'PatternDetector',
    'PatternDetectorConfig',
    'find_checkerboard_corners',
    'CorrespondenceBuilder',
    'InitialIntrinsicsEstimator',
    'estimate_camera_matrix',
    'CalibrationRefiner',
    'RefinementResult',
]
