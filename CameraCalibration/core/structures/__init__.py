from .pattern import PatternGeometry, DetectionResult
from .correspondence import CorrespondenceSet
from .camera_model import (
    CameraModel,
    Pose,
    CalibrationReport,
    NUM_DIST_COEFFS
)

__all__ = [
    # Pattern
    'PatternGeometry',
    'DetectionResult',

    # Correspondences
    'CorrespondenceSet',

    # Camera
    'CameraModel',
    'Pose',
    'CalibrationReport',
    'NUM_DIST_COEFFS',
]
