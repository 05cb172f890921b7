from .homography import (
    estimate_homography,
    pose_from_homography,
    initial_pose,
    undistort_image_points
)
from .projection import project_points, project_with_jacobian, reprojection_errors

__all__ = [
    'estimate_homography',
    'pose_from_homography',
    'initial_pose',
    'undistort_image_points',
    'project_points',
    'project_with_jacobian',
    'reprojection_errors',
]
