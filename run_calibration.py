"""
Camera Calibration - Complete Workflow
======================================

Calibrates a single camera from a folder of checkerboard photographs:
1. Detect internal corners in every image
2. Closed-form initial camera matrix
3. Coarse refinement (fixed aspect ratio, no tangential distortion)
4. Full refinement
5. Save Intrinsics.xml / Distortion.xml

Usage:
    python run_calibration.py --images ./chessboards --output ./calibration
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from CameraCalibration.cli import main


if __name__ == '__main__':
    sys.exit(main())
