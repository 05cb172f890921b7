from .session import CalibrationSession, calibrate_camera

__all__ = [
    'CalibrationSession',
    'calibrate_camera',
]
