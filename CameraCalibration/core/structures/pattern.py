import numpy as np
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class PatternGeometry:
    """
    Planar checkerboard description.

    Attributes:
        width: Number of internal corners along a row
        height: Number of internal corners along a column
        side_length: Physical side length of one square (e.g. mm)
    """
    width: int
    height: int
    side_length: float = 1.0

    def __post_init__(self):
        if self.width < 2 or self.height < 2:
            raise ValueError(
                f"Checkerboard needs at least 2x2 internal corners, got {self.width}x{self.height}"
            )
        if not self.side_length > 0:
            raise ValueError(f"Square side length must be positive, got {self.side_length}")

    @property
    def pattern_size(self) -> Tuple[int, int]:
        """(width, height) in internal corners"""
        return (self.width, self.height)

    @property
    def num_corners(self) -> int:
        return self.width * self.height

    def object_points(self) -> np.ndarray:
        """
        3D template of the internal corners on the z=0 plane.

        Row-major from the origin corner: point k = i*width + j sits at
        (j * side_length, i * side_length, 0).

        Returns:
            (width*height, 3) float64 array
        """
        jj, ii = np.meshgrid(np.arange(self.width), np.arange(self.height))
        points = np.zeros((self.num_corners, 3), dtype=np.float64)
        points[:, 0] = jj.ravel() * self.side_length
        points[:, 1] = ii.ravel() * self.side_length
        return points


@dataclass
class DetectionResult:
    """
    Outcome of running the pattern detector on one image.

    Attributes:
        found: Whether a complete lattice was located
        corners: (width*height, 2) sub-pixel corners in row-major template order
        image_index: Position of the image in the session's input sequence
        reason: Why detection failed (empty when found)
        metadata: Detector diagnostics (threshold strategy, iterations, ...)
    """
    found: bool
    corners: Optional[np.ndarray] = None
    image_index: Optional[int] = None
    reason: str = ""
    metadata: dict = field(default_factory=dict)

    @classmethod
    def found_at(cls, corners: np.ndarray, image_index: Optional[int] = None,
                 **metadata) -> "DetectionResult":
        return cls(found=True,
                   corners=np.asarray(corners, dtype=np.float64).reshape(-1, 2),
                   image_index=image_index,
                   metadata=metadata)

    @classmethod
    def not_found(cls, reason: str, image_index: Optional[int] = None,
                  **metadata) -> "DetectionResult":
        return cls(found=False, image_index=image_index, reason=reason, metadata=metadata)

    def __bool__(self) -> bool:
        return self.found

    def __repr__(self) -> str:
        if self.found:
            return f"DetectionResult(found, image={self.image_index}, corners={len(self.corners)})"
        return f"DetectionResult(not found, image={self.image_index}, reason='{self.reason}')"
