"""
CameraCalibration - Single-camera intrinsic calibration from checkerboard images

Detects checkerboard corners, estimates a closed-form camera matrix and
refines intrinsics, lens distortion and per-view poses by nonlinear least
squares.
"""

from .logger import (
    setup_logger,
    get_logger,
    configure_root_logger,
    disable_console_logging,
    set_level
)
from .config import RefinementConfig, SessionConfig, COARSE_PASS, FULL_PASS
from .core import (
    CalibrationError,
    DetectionFailure,
    InsufficientData,
    DegenerateGeometry,
    ConvergenceFailure,
    IllConditioned,
    IOFailure
)
from .core.structures import (
    PatternGeometry,
    DetectionResult,
    CorrespondenceSet,
    CameraModel,
    Pose,
    CalibrationReport
)
from .algorithms import (
    PatternDetector,
    find_checkerboard_corners,
    CorrespondenceBuilder,
    InitialIntrinsicsEstimator,
    estimate_camera_matrix,
    CalibrationRefiner
)
from .data import create_provider, load_images, save_calibration, load_calibration
from .visualization import CornerViewer
from .pipeline import CalibrationSession, calibrate_camera

__version__ = "1.0.0"
__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "configure_root_logger",
    "disable_console_logging",
    "set_level",

    # Configuration
    "RefinementConfig",
    "SessionConfig",
    "COARSE_PASS",
    "FULL_PASS",

    # Errors
    "CalibrationError",
    "DetectionFailure",
    "InsufficientData",
    "DegenerateGeometry",
    "ConvergenceFailure",
    "IllConditioned",
    "IOFailure",

    # Data structures
    "PatternGeometry",
    "DetectionResult",
    "CorrespondenceSet",
    "CameraModel",
    "Pose",
    "CalibrationReport",

    # Algorithms
    "PatternDetector",
    "find_checkerboard_corners",
    "CorrespondenceBuilder",
    "InitialIntrinsicsEstimator",
    "estimate_camera_matrix",
    "CalibrationRefiner",

    # Data
    "create_provider",
    "load_images",
    "save_calibration",
    "load_calibration",

    # Pipeline
    "CornerViewer",
    "CalibrationSession",
    "calibrate_camera",
]
