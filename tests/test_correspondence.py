import numpy as np
import pytest

from CameraCalibration.algorithms.correspondence import CorrespondenceBuilder
from CameraCalibration.core.structures import CorrespondenceSet, DetectionResult, PatternGeometry


def _found(index, geometry, offset=0.0):
    corners = np.arange(geometry.num_corners * 2, dtype=np.float64).reshape(-1, 2) + offset
    return DetectionResult.found_at(corners, image_index=index)


def test_object_points_template():
    geometry = PatternGeometry(3, 2, 10.0)
    points = geometry.object_points()

    assert points.shape == (6, 3)
    assert points.dtype == np.float64
    np.testing.assert_array_equal(points[:, 2], 0)
    # Row-major: k = i*width + j -> (j*s, i*s)
    np.testing.assert_array_equal(points[1], [10.0, 0.0, 0.0])
    np.testing.assert_array_equal(points[3], [0.0, 10.0, 0.0])
    np.testing.assert_array_equal(points[5], [20.0, 10.0, 0.0])


def test_geometry_validation():
    with pytest.raises(ValueError):
        PatternGeometry(1, 5, 10.0)
    with pytest.raises(ValueError):
        PatternGeometry(6, 8, 0.0)


def test_builder_skips_not_found_and_preserves_order():
    geometry = PatternGeometry(6, 8, 22.5)
    detections = [
        _found(0, geometry),
        DetectionResult.not_found("no squares", image_index=1),
        _found(2, geometry, offset=1.0),
        _found(3, geometry, offset=2.0),
    ]

    correspondences = CorrespondenceBuilder(geometry).build(detections)

    assert len(correspondences) == 3
    assert correspondences.image_indices == [0, 2, 3]
    assert len(correspondences.object_points) == len(correspondences.image_points)
    assert correspondences.total_points == 3 * geometry.num_corners
    np.testing.assert_array_equal(correspondences.image_points[1], detections[2].corners)


def test_template_is_shared_and_bit_identical():
    geometry = PatternGeometry(6, 8, 22.5)
    detections = [_found(i, geometry) for i in range(4)]

    correspondences = CorrespondenceBuilder(geometry).build(detections)

    first = correspondences.object_points[0]
    for template in correspondences.object_points:
        assert template is first
    np.testing.assert_array_equal(first, geometry.object_points())
    assert not first.flags.writeable


def test_empty_when_nothing_found():
    geometry = PatternGeometry(6, 8, 22.5)
    detections = [DetectionResult.not_found("blank", image_index=i) for i in range(3)]

    correspondences = CorrespondenceBuilder(geometry).build(detections)

    assert correspondences.is_empty()
    assert correspondences.total_points == 0


def test_missing_index_uses_position():
    geometry = PatternGeometry(2, 2, 1.0)
    detections = [DetectionResult.not_found("blank"), _found(None, geometry)]

    correspondences = CorrespondenceBuilder(geometry).build(detections)

    assert correspondences.image_indices == [1]


def test_wrong_corner_count_rejected():
    geometry = PatternGeometry(6, 8, 22.5)
    bad = DetectionResult.found_at(np.zeros((10, 2)), image_index=0)
    with pytest.raises(ValueError):
        CorrespondenceBuilder(geometry).build([bad])


def test_correspondence_set_append_checks_lengths():
    correspondences = CorrespondenceSet()
    with pytest.raises(ValueError):
        correspondences.append(np.zeros((4, 3)), np.zeros((5, 2)), 0)

