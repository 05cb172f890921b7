import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent  # Go up from tests/ to project root
sys.path.insert(0, str(project_root))

from synthetic import GEOMETRY, random_poses, render_checkerboard  # noqa: E402


@pytest.fixture(scope="session")
def board_poses():
    """Ten well-spread poses of the 6x8 board"""
    return random_poses(GEOMETRY, 10, seed=42)


@pytest.fixture(scope="session")
def board_images(board_poses):
    """640x480 renders of the 6x8 board, one per pose"""
    return [render_checkerboard(GEOMETRY, pose) for pose in board_poses]
