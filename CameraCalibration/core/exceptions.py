"""
Calibration error taxonomy.

Every failure carries the pipeline stage that raised it and, where it applies,
the index of the image being processed. Only DetectionFailure is recoverable:
the session absorbs it and records the image as not found.
"""

from typing import Optional


class CalibrationError(Exception):
    """Base class for all calibration failures"""

    def __init__(self,
                 message: str,
                 stage: Optional[str] = None,
                 image_index: Optional[int] = None):
        self.message = message
        self.stage = stage
        self.image_index = image_index
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.stage:
            context.append(f"stage={self.stage}")
        if self.image_index is not None:
            context.append(f"image={self.image_index}")
        if context:
            return f"[{', '.join(context)}] {self.message}"
        return self.message


class DetectionFailure(CalibrationError):
    """The pattern could not be located in one image (non-fatal)"""


class InsufficientData(CalibrationError):
    """Too few accepted images or points to calibrate"""


class DegenerateGeometry(CalibrationError):
    """The views do not constrain a closed-form intrinsic estimate"""


class ConvergenceFailure(CalibrationError):
    """Damped least squares could not make progress"""


class IllConditioned(CalibrationError):
    """The parameter Jacobian is rank deficient"""


class IOFailure(CalibrationError):
    """An image could not be loaded or a result could not be written"""

    def __init__(self,
                 message: str,
                 path: Optional[str] = None,
                 stage: Optional[str] = "io",
                 image_index: Optional[int] = None):
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message, stage=stage, image_index=image_index)
