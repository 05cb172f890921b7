import numpy as np
import cv2
import pytest

from CameraCalibration.algorithms.detection import (
    PatternDetector,
    find_checkerboard_corners,
    to_grayscale,
    binarize,
    extract_quads,
    match_quad_corners,
    assemble_lattice,
    refine_corners,
)
from CameraCalibration.algorithms.detection.lattice import build_adjacency, validate_lattice
from CameraCalibration.core.structures import PatternGeometry

from synthetic import GEOMETRY, make_pose, project_corners, render_checkerboard


def test_detector_recovers_all_corners(board_poses, board_images):
    """Every corner within 0.5px of ground truth, row-major template order"""
    detector = PatternDetector()

    for index, (pose, image) in enumerate(zip(board_poses, board_images)):
        result = detector.detect(image, GEOMETRY.width, GEOMETRY.height, image_index=index)
        assert result.found, f"image {index}: {result.reason}"
        assert result.image_index == index
        assert result.corners.shape == (GEOMETRY.num_corners, 2)

        truth = project_corners(GEOMETRY, pose)
        errors = np.linalg.norm(result.corners - truth, axis=1)
        assert errors.max() < 0.5, f"image {index}: max error {errors.max():.3f}px"


def test_detector_accepts_grayscale_and_does_not_modify_input(board_images):
    image = board_images[0]
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    before = gray.copy()

    result = find_checkerboard_corners(gray, GEOMETRY.width, GEOMETRY.height)

    assert result.found
    np.testing.assert_array_equal(gray, before)


def test_detector_is_deterministic(board_images):
    detector = PatternDetector()
    first = detector.detect(board_images[3], GEOMETRY.width, GEOMETRY.height)
    second = detector.detect(board_images[3], GEOMETRY.width, GEOMETRY.height)
    np.testing.assert_array_equal(first.corners, second.corners)


def test_wrong_grid_size_not_found(board_images):
    result = PatternDetector().detect(board_images[0], 7, 8)
    assert not result.found
    assert result.corners is None
    assert result.reason


def test_partial_occlusion_not_found(board_poses):
    pose = board_poses[0]
    image = render_checkerboard(GEOMETRY, pose)
    truth = project_corners(GEOMETRY, pose)

    # Cover the last two rows of corners
    top = int(truth[GEOMETRY.width * (GEOMETRY.height - 2):, 1].min()) - 8
    image[top:, :] = 220

    result = PatternDetector().detect(image, GEOMETRY.width, GEOMETRY.height)
    assert not result.found


def test_blank_image_not_found():
    image = np.full((480, 640), 128, dtype=np.uint8)
    result = PatternDetector().detect(image, 6, 8)
    assert not result.found
    assert not result


def test_fast_check_disabled_still_rejects_blank_image():
    image = np.full((480, 640, 3), 200, dtype=np.uint8)
    result = PatternDetector(fast_check=False).detect(image, 6, 8)
    assert not result.found


def test_malformed_image_raises():
    with pytest.raises(ValueError):
        PatternDetector().detect(np.zeros((0, 0), dtype=np.uint8), 6, 8)
    with pytest.raises(ValueError):
        PatternDetector().detect(np.zeros((10, 10, 2), dtype=np.uint8), 6, 8)


def test_unknown_option_rejected():
    with pytest.raises(ValueError):
        PatternDetector(no_such_option=1)


def test_config_override():
    detector = PatternDetector(subpix_window=(3, 3), normalize_image=False)
    assert detector.config.SUBPIX_WINDOW == (3, 3)
    assert detector.config.NORMALIZE_IMAGE is False


def test_symmetric_grid_orientation():
    """On a square lattice, rows run along the most horizontal side from the corner nearest the origin"""
    geometry = PatternGeometry(5, 5, 25.0)

    for roll in (0.0, 90.0, 180.0, -90.0):
        pose = make_pose(geometry, [10.0, -12.0, roll], depth=500.0)
        image = render_checkerboard(geometry, pose)
        result = PatternDetector().detect(image, 5, 5)
        assert result.found, f"roll {roll}: {result.reason}"

        corners = result.corners
        lattice_corners = corners[[0, 4, 20, 24]]
        distances = np.linalg.norm(lattice_corners, axis=1)
        assert distances[0] == pytest.approx(distances.min())

        step_row = corners[1] - corners[0]
        step_col = corners[5] - corners[0]
        assert abs(step_row[0]) / np.linalg.norm(step_row) >= \
            abs(step_col[0]) / np.linalg.norm(step_col)


def test_symmetric_grid_matches_template_without_roll():
    geometry = PatternGeometry(5, 5, 25.0)
    pose = make_pose(geometry, [8.0, 10.0, 0.0], depth=480.0)
    image = render_checkerboard(geometry, pose)

    result = PatternDetector().detect(image, 5, 5)
    assert result.found
    truth = project_corners(geometry, pose)
    assert np.abs(result.corners - truth).max() < 0.5


def _max_error_up_to_symmetry(corners, truth, width, height):
    """Smallest max error over the orderings a lattice symmetry allows"""
    grid = truth.reshape(height, width, 2)
    detected = corners.reshape(height, width, 2)
    candidates = [grid, grid[::-1], grid[:, ::-1], grid[::-1, ::-1]]
    return min(np.linalg.norm(detected - g, axis=2).max() for g in candidates)


@pytest.mark.parametrize("roll", [45.0, 135.0, -45.0])
def test_detector_finds_board_rolled_between_axes(roll):
    pose = make_pose(GEOMETRY, [10.0, -8.0, roll], depth=600.0)
    image = render_checkerboard(GEOMETRY, pose)

    result = PatternDetector().detect(image, GEOMETRY.width, GEOMETRY.height)

    assert result.found, f"roll {roll}: {result.reason}"
    truth = project_corners(GEOMETRY, pose)
    error = _max_error_up_to_symmetry(result.corners, truth, GEOMETRY.width, GEOMETRY.height)
    assert error < 0.5, f"roll {roll}: max error {error:.3f}px"


def test_detector_finds_far_board():
    """Squares of about 15px only separate at the deeper erosions"""
    pose = make_pose(GEOMETRY, [12.0, -10.0, 5.0], depth=1200.0)
    image = render_checkerboard(GEOMETRY, pose)

    result = PatternDetector().detect(image, GEOMETRY.width, GEOMETRY.height)

    assert result.found, result.reason
    truth = project_corners(GEOMETRY, pose)
    errors = np.linalg.norm(result.corners - truth, axis=1)
    assert errors.max() < 0.5, f"max error {errors.max():.3f}px"


# =============================================================================
# STAGES
# =============================================================================

def test_threshold_marks_dark_squares_as_foreground(board_images):
    gray = to_grayscale(board_images[0])
    mask = binarize(gray, 121, 10)
    assert mask.dtype == np.uint8
    assert set(np.unique(mask)).issubset({0, 255})
    # Image corners are background (light margin)
    assert mask[0, 0] == 0


def test_binarize_rejects_even_block():
    with pytest.raises(ValueError):
        binarize(np.zeros((20, 20), dtype=np.uint8), 10)


def _draw_squares(cells, size=40, origin=(50, 50), shape=(300, 300)):
    image = np.full(shape, 220, dtype=np.uint8)
    for row, col in cells:
        x0 = origin[0] + col * size
        y0 = origin[1] + row * size
        image[y0:y0 + size, x0:x0 + size] = 30
    return image


def test_quads_and_corner_candidates():
    # Two dark squares meeting at one corner
    image = _draw_squares([(0, 0), (1, 1)])
    mask = cv2.erode(binarize(image, 151, 10), np.ones((3, 3), np.uint8))

    quads = extract_quads(mask)
    assert len(quads) == 2
    for quad in quads:
        assert quad.vertices.shape == (4, 2)
        assert quad.mean_side == pytest.approx(38, abs=4)

    candidates = match_quad_corners(quads)
    assert len(candidates) == 1
    np.testing.assert_allclose(candidates[0].point, [89.5, 89.5], atol=2.0)
    owners = {quad_idx for quad_idx, _ in candidates[0].members}
    assert owners == {0, 1}


def test_corner_pairing_allows_for_erosion_gap():
    # Two diamonds (a board rolled by 45 degrees) touching at (130, 150)
    image = np.full((300, 300), 220, dtype=np.uint8)
    for cx in (100, 160):
        diamond = np.array([[cx - 30, 150], [cx, 120], [cx + 30, 150], [cx, 180]], dtype=np.int32)
        cv2.fillConvexPoly(image, diamond, 30)
    mask = cv2.erode(binarize(image, 151, 10), np.ones((3, 3), np.uint8), iterations=4)

    quads = extract_quads(mask)
    assert len(quads) == 2

    # Each tip retreated by 8px, more than the plain distance limit
    assert match_quad_corners(quads) == []

    candidates = match_quad_corners(quads, erosion_iterations=4)
    assert len(candidates) == 1
    np.testing.assert_allclose(candidates[0].point, [130.0, 150.0], atol=3.0)
    owners = {quad_idx for quad_idx, _ in candidates[0].members}
    assert owners == {0, 1}


def test_lattice_assembly_on_small_board():
    # 3x4 squares -> 2x3 internal corners
    cells = [(r, c) for r in range(4) for c in range(3) if (r + c) % 2 == 0]
    image = _draw_squares(cells)
    mask = cv2.erode(binarize(image, 151, 10), np.ones((3, 3), np.uint8))

    quads = extract_quads(mask)
    candidates = match_quad_corners(quads)
    assert len(candidates) == 6

    corners, reason = assemble_lattice(candidates, quads, 2, 3)
    assert corners is not None, reason

    expected = np.array([[89.5 + 40 * j, 89.5 + 40 * i] for i in range(3) for j in range(2)])
    np.testing.assert_allclose(corners, expected, atol=2.0)

    refined = refine_corners(image, corners)
    np.testing.assert_allclose(refined, expected, atol=0.3)


def test_lattice_validation_counts():
    cells = [(r, c) for r in range(4) for c in range(3) if (r + c) % 2 == 0]
    image = _draw_squares(cells)
    mask = cv2.erode(binarize(image, 151, 10), np.ones((3, 3), np.uint8))
    quads = extract_quads(mask)
    candidates = match_quad_corners(quads)
    graph = build_adjacency(candidates, len(quads))

    nodes = sorted(graph)
    assert validate_lattice(graph, nodes, 2, 3) == (True, "")
    is_valid, reason = validate_lattice(graph, nodes, 3, 3)
    assert not is_valid
    assert "corners" in reason


def test_subpixel_moves_rough_corner_onto_true_corner():
    image = _draw_squares([(0, 0), (1, 1)])
    rough = np.array([[91.2, 88.1]])
    refined = refine_corners(image, rough)
    np.testing.assert_allclose(refined[0], [89.5, 89.5], atol=0.2)
