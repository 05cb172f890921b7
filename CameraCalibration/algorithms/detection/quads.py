"""
Candidate extraction stage of checkerboard detection.

Connected dark blobs of a binary mask are approximated by convex
quadrilaterals. Two dark squares meet diagonally at every internal corner of
the board, so an internal corner shows up as a pair of vertices, one from
each of two different quads, that lie close together.
"""

import numpy as np
import cv2
from dataclasses import dataclass
from typing import List, Sequence, Tuple
from scipy.spatial import cKDTree

# Each 3x3 erosion pulls a vertex up to 2px towards its square (45 degree roll),
# so two vertices of one corner drift up to 4px apart.
EROSION_GAP_PER_ITERATION = 4.0


@dataclass
class Quad:
    """
    Convex quadrilateral approximating one dark square.

    Attributes:
        vertices: (4, 2) corners in contour order (consecutive vertices share a side)
        area: Polygon area in pixels
    """
    vertices: np.ndarray
    area: float

    @property
    def side_lengths(self) -> np.ndarray:
        return np.linalg.norm(np.roll(self.vertices, -1, axis=0) - self.vertices, axis=1)

    @property
    def mean_side(self) -> float:
        return float(np.mean(self.side_lengths))


@dataclass
class CornerCandidate:
    """
    Internal-corner candidate formed by two touching quad vertices.

    Attributes:
        point: (2,) midpoint of the two vertices
        members: ((quad index, vertex index), (quad index, vertex index))
    """
    point: np.ndarray
    members: Tuple[Tuple[int, int], Tuple[int, int]]


def approximate_quad(contour: np.ndarray,
                     epsilon_fractions: Sequence[float] = (0.02, 0.04, 0.06, 0.08, 0.1)):
    """
    Approximate a contour by a 4-vertex polygon.

    Tries increasingly coarse tolerances and stops as soon as the polygon
    has four vertices or fewer.

    Returns:
        (4, 2) float64 vertices, or None if no quadrilateral fits
    """
    perimeter = cv2.arcLength(contour, True)
    for fraction in epsilon_fractions:
        polygon = cv2.approxPolyDP(contour, fraction * perimeter, True)
        if len(polygon) == 4:
            if not cv2.isContourConvex(polygon):
                return None
            return polygon.reshape(4, 2).astype(np.float64)
        if len(polygon) < 4:
            return None
    return None


def extract_quads(mask: np.ndarray,
                  min_area: float = 25.0,
                  max_side_ratio: float = 4.0,
                  min_fill_ratio: float = 0.7) -> List[Quad]:
    """
    Find dark squares in a binary mask.

    Args:
        mask: HxW uint8 mask with dark squares as foreground
        min_area: Smallest accepted blob area in pixels
        max_side_ratio: Longest/shortest side limit of an accepted quad
        min_fill_ratio: Blob area must be within [ratio, 1/ratio] of the quad area

    Returns:
        List of Quad
    """
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    quads = []
    for contour in contours:
        blob_area = cv2.contourArea(contour)
        if blob_area < min_area:
            continue

        vertices = approximate_quad(contour)
        if vertices is None:
            continue

        quad_area = cv2.contourArea(vertices.astype(np.float32))
        if quad_area <= 0:
            continue
        fill = blob_area / quad_area
        if fill < min_fill_ratio or fill > 1.0 / min_fill_ratio:
            continue

        quad = Quad(vertices=vertices, area=float(quad_area))
        sides = quad.side_lengths
        if sides.min() <= 0 or sides.max() / sides.min() > max_side_ratio:
            continue

        quads.append(quad)

    return quads


def match_quad_corners(quads: List[Quad],
                       max_distance_ratio: float = 0.35,
                       erosion_iterations: int = 0) -> List[CornerCandidate]:
    """
    Pair vertices of different quads that meet at an internal corner.

    Each vertex joins at most one pair; pairs are taken greedily from the
    closest up. Two vertices may pair only if their distance is below
    max_distance_ratio times the smaller mean side of their quads, plus the
    gap the erosion of the mask opened between them.

    Args:
        quads: Quads from extract_quads
        max_distance_ratio: Distance limit relative to the local square size
        erosion_iterations: 3x3 erosions applied to the mask the quads came from

    Returns:
        List of CornerCandidate
    """
    if len(quads) < 2:
        return []

    vertices = np.vstack([q.vertices for q in quads])
    owners = np.repeat(np.arange(len(quads)), 4)
    corner_ids = np.tile(np.arange(4), len(quads))
    sides = np.array([q.mean_side for q in quads])

    tree = cKDTree(vertices)
    gap = EROSION_GAP_PER_ITERATION * max(erosion_iterations, 0)
    radius = max_distance_ratio * float(sides.max()) + gap
    pairs = tree.query_pairs(r=radius, output_type='ndarray')
    if len(pairs) == 0:
        return []

    a, b = pairs[:, 0], pairs[:, 1]
    distances = np.linalg.norm(vertices[a] - vertices[b], axis=1)
    limits = max_distance_ratio * np.minimum(sides[owners[a]], sides[owners[b]]) + gap
    keep = (owners[a] != owners[b]) & (distances < limits)
    a, b, distances = a[keep], b[keep], distances[keep]

    used = np.zeros(len(vertices), dtype=bool)
    candidates = []
    for k in np.argsort(distances, kind='stable'):
        i, j = a[k], b[k]
        if used[i] or used[j]:
            continue
        used[i] = used[j] = True
        candidates.append(CornerCandidate(
            point=(vertices[i] + vertices[j]) * 0.5,
            members=((int(owners[i]), int(corner_ids[i])),
                     (int(owners[j]), int(corner_ids[j])))
        ))

    return candidates
