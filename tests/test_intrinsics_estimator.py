import numpy as np
import pytest

from CameraCalibration.algorithms.estimation import (
    InitialIntrinsicsEstimator,
    estimate_camera_matrix,
    raise_for_estimation
)
from CameraCalibration.algorithms.geometry import (
    estimate_homography,
    pose_from_homography,
    initial_pose
)
from CameraCalibration.core.exceptions import InsufficientData, DegenerateGeometry
from CameraCalibration.core.interfaces import EstimationStatus
from CameraCalibration.core.structures import CorrespondenceSet

from synthetic import (
    GEOMETRY, IMAGE_SIZE, TRUE_K, make_pose, project_corners, random_poses,
    synthetic_correspondences
)


def _apply_homography(H, points):
    homogeneous = np.column_stack([points[:, :2], np.ones(len(points))]) @ H.T
    return homogeneous[:, :2] / homogeneous[:, 2:]


# =============================================================================
# HOMOGRAPHY
# =============================================================================

def test_homography_is_exact_on_noise_free_projection():
    pose = make_pose(GEOMETRY, [20.0, -15.0, 5.0])
    obj = GEOMETRY.object_points()
    img = project_corners(GEOMETRY, pose)

    H = estimate_homography(obj, img)

    assert H is not None
    assert H[2, 2] == pytest.approx(1.0)
    np.testing.assert_allclose(_apply_homography(H, obj), img, atol=1e-6)


def test_homography_needs_four_points():
    obj = GEOMETRY.object_points()[:3]
    assert estimate_homography(obj, obj[:, :2] * 2.0) is None


def test_homography_rejects_collinear_points():
    obj = np.column_stack([np.arange(10.0), np.zeros(10), np.zeros(10)])
    img = np.column_stack([np.arange(10.0) * 3 + 5, np.full(10, 7.0)])
    assert estimate_homography(obj, img) is None


def test_pose_from_homography_recovers_pose():
    pose = make_pose(GEOMETRY, [-18.0, 12.0, 30.0], offset_xy=(10.0, -5.0))
    R = pose.rotation_matrix()
    H = TRUE_K @ np.column_stack([R[:, 0], R[:, 1], pose.tvec])

    # Arbitrary (negative) scale must not matter
    recovered = pose_from_homography(-3.0 * H, TRUE_K)

    np.testing.assert_allclose(recovered.rotation_matrix(), R, atol=1e-9)
    np.testing.assert_allclose(recovered.tvec, pose.tvec, rtol=1e-9)


def test_initial_pose_from_detected_corners():
    pose = make_pose(GEOMETRY, [10.0, 22.0, -4.0])
    img = project_corners(GEOMETRY, pose)

    recovered, H = initial_pose(GEOMETRY.object_points(), img, TRUE_K)

    assert H is not None
    assert recovered.tvec[2] > 0
    np.testing.assert_allclose(recovered.rvec, pose.rvec, atol=1e-6)


# =============================================================================
# CLOSED-FORM INTRINSICS
# =============================================================================

def test_initial_estimate_close_to_truth():
    correspondences = synthetic_correspondences(GEOMETRY, random_poses(GEOMETRY, 8))

    result = InitialIntrinsicsEstimator().estimate(correspondences, IMAGE_SIZE)

    assert result.success
    assert result.status == EstimationStatus.SUCCESS
    K = result.model
    assert K.shape == (3, 3)
    assert K[0, 0] == pytest.approx(800.0, rel=0.05)
    assert K[1, 1] == pytest.approx(800.0, rel=0.05)
    assert K[0, 2] == pytest.approx((IMAGE_SIZE[0] - 1) / 2.0)
    assert K[1, 2] == pytest.approx((IMAGE_SIZE[1] - 1) / 2.0)
    assert K[0, 1] == 0.0
    assert result.metadata['num_views'] == 8


def test_initial_estimate_with_fixed_aspect_ratio():
    correspondences = synthetic_correspondences(GEOMETRY, random_poses(GEOMETRY, 6, seed=3))

    K = estimate_camera_matrix(correspondences, IMAGE_SIZE, aspect_ratio=1.25)

    assert K[0, 0] / K[1, 1] == pytest.approx(1.25)


def test_initial_estimate_tolerates_noise():
    correspondences = synthetic_correspondences(GEOMETRY, random_poses(GEOMETRY, 10, seed=7),
                                                noise=0.3, seed=1)
    K = estimate_camera_matrix(correspondences, IMAGE_SIZE)
    assert K[0, 0] == pytest.approx(800.0, rel=0.1)


def test_empty_correspondences():
    result = InitialIntrinsicsEstimator().estimate(CorrespondenceSet(), IMAGE_SIZE)

    assert not result.success
    assert result.status == EstimationStatus.INSUFFICIENT_DATA

    with pytest.raises(InsufficientData) as excinfo:
        raise_for_estimation(result)
    assert excinfo.value.stage == "initial_estimate"


def test_fronto_parallel_views_are_degenerate():
    poses = [make_pose(GEOMETRY, [0.0, 0.0, roll], offset_xy=(5.0 * k, 0.0))
             for k, roll in enumerate([0.0, 20.0, 50.0])]
    correspondences = synthetic_correspondences(GEOMETRY, poses)

    result = InitialIntrinsicsEstimator().estimate(correspondences, IMAGE_SIZE)
    assert result.status == EstimationStatus.DEGENERATE_CONFIG

    with pytest.raises(DegenerateGeometry):
        estimate_camera_matrix(correspondences, IMAGE_SIZE)


def test_invalid_image_size():
    correspondences = synthetic_correspondences(GEOMETRY, random_poses(GEOMETRY, 3))
    is_valid, error = InitialIntrinsicsEstimator().validate_input(correspondences, (0, 480))
    assert not is_valid
    assert error
