"""
Calibration Configuration
=========================

Immutable configuration for one calibration session and for the two
refinement passes. Algorithm constants (detector thresholds, solver damping)
live next to their algorithms as UPPERCASE config classes.
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

from CameraCalibration.core.structures import PatternGeometry


@dataclass(frozen=True)
class RefinementConfig:
    """
    Constraint set for one run of the nonlinear refiner.

    Attributes:
        fix_aspect_ratio: Keep fx/fy at the ratio of the seed camera matrix
        zero_tangential_distortion: Hold p1 = p2 = 0
        use_intrinsic_guess: Seed from the given camera matrix and distortion
            instead of a fresh closed-form estimate
        fix_principal_point: Hold cx, cy at their seed values
        fix_k3: Hold k3 at its seed value
        max_iterations: Levenberg-Marquardt iteration cap
        tolerance: Stop once the relative decrease of the squared residual
            falls below this value
        max_damping_attempts: Rejected steps allowed per iteration before
            the run is declared stuck
    """
    fix_aspect_ratio: bool = False
    zero_tangential_distortion: bool = False
    use_intrinsic_guess: bool = True
    fix_principal_point: bool = False
    fix_k3: bool = False
    max_iterations: int = 50
    tolerance: float = 1e-10
    max_damping_attempts: int = 10

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.max_damping_attempts < 1:
            raise ValueError(f"max_damping_attempts must be >= 1, got {self.max_damping_attempts}")

    def with_overrides(self, **changes) -> "RefinementConfig":
        return replace(self, **changes)


# First pass: stabilise focal length and radial terms around the closed-form guess
COARSE_PASS = RefinementConfig(
    fix_aspect_ratio=True,
    zero_tangential_distortion=True,
    use_intrinsic_guess=True,
)

# Second pass: release aspect ratio and tangential terms, seeded by the first
FULL_PASS = RefinementConfig(
    use_intrinsic_guess=True,
)


@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration for one calibration session.

    Attributes:
        image_dir: Folder with checkerboard images
        output_dir: Folder receiving Intrinsics.xml / Distortion.xml
        side_length: Side of one checkerboard square, physical units (mm)
        grid_width: Internal corners along a row
        grid_height: Internal corners along a column
        show_corners: Pass each detection to the corner viewer
        workers: Detection threads (1 = sequential)
        min_images: Accepted images required to calibrate (never below 2)
        coarse_pass: Constraints of the first refinement pass
        full_pass: Constraints of the second refinement pass
    """
    image_dir: Optional[Union[str, Path]] = None
    output_dir: Optional[Union[str, Path]] = None
    side_length: float = 22.5
    grid_width: int = 6
    grid_height: int = 8
    show_corners: bool = False
    workers: int = 1
    min_images: int = 2
    coarse_pass: RefinementConfig = COARSE_PASS
    full_pass: RefinementConfig = FULL_PASS

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.min_images < 2:
            raise ValueError(f"At least 2 images are needed to calibrate, min_images={self.min_images}")
        # Raises ValueError on a bad grid
        self.geometry()

    def geometry(self) -> PatternGeometry:
        return PatternGeometry(self.grid_width, self.grid_height, self.side_length)
