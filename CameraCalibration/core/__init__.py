"""
Core types of the calibration package: data structures, interfaces and errors.
"""

from .exceptions import (
    CalibrationError,
    DetectionFailure,
    InsufficientData,
    DegenerateGeometry,
    ConvergenceFailure,
    IllConditioned,
    IOFailure
)

__all__ = [
    'CalibrationError',
    'DetectionFailure',
    'InsufficientData',
    'DegenerateGeometry',
    'ConvergenceFailure',
    'IllConditioned',
    'IOFailure',
]
