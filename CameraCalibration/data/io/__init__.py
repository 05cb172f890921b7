from .matrix_io import (
    MatrixIO,
    save_calibration,
    load_calibration,
    INTRINSICS_FILE,
    DISTORTION_FILE
)

__all__ = [
    'MatrixIO',
    'save_calibration',
    'load_calibration',
    'INTRINSICS_FILE',
    'DISTORTION_FILE',
]
