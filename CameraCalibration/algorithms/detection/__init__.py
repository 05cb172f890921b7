"""
Checkerboard detection stages and the detector that chains them.
"""

from .pattern_detector import (
    PatternDetector,
    PatternDetectorConfig,
    find_checkerboard_corners
)
from .threshold import (
    to_grayscale,
    normalize_intensity,
    binarize,
    global_binarize,
    separate_squares,
    threshold_strategies
)
from .quads import Quad, CornerCandidate, extract_quads, match_quad_corners
from .lattice import assemble_lattice, build_adjacency, validate_lattice
from .subpixel import refine_corners, refine_corner

__all__ = [
    'PatternDetector',
    'PatternDetectorConfig',
    'find_checkerboard_corners',
    'to_grayscale',
    'normalize_intensity',
    'binarize',
    'global_binarize',
    'separate_squares',
    'threshold_strategies',
    'Quad',
    'CornerCandidate',
    'extract_quads',
    'match_quad_corners',
    'assemble_lattice',
    'build_adjacency',
    'validate_lattice',
    'refine_corners',
    'refine_corner',
]
