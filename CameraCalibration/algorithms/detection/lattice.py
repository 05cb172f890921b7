"""
Lattice assembly and validation stage of checkerboard detection.

Corner candidates become nodes of a graph; two nodes are joined when they are
consecutive vertices of the same dark square, which is exactly the set of
edges of the internal-corner lattice. The graph is accepted only if it is a
complete width x height grid, and its nodes are then ordered row-major.

Ordering convention:
    - The first corner is the lattice corner nearest the image origin
      (Euclidean distance to pixel (0, 0)); ties go to the smaller y, then
      the smaller x.
    - Rows run along the lattice side holding `width` corners. On a square
      lattice (width == height) rows run along the start corner's most
      horizontal side (largest |dx| / |d|); ties go toward +x.
"""

import numpy as np
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

from .quads import CornerCandidate, Quad

Graph = Dict[int, Set[int]]


def build_adjacency(candidates: List[CornerCandidate], num_quads: int) -> Graph:
    """
    Join candidates that are consecutive vertices of a common quad.

    Args:
        candidates: Corner candidates from match_quad_corners
        num_quads: Number of quads the candidates refer to

    Returns:
        Adjacency sets keyed by candidate index
    """
    vertex_node = np.full((num_quads, 4), -1, dtype=int)
    for node, candidate in enumerate(candidates):
        for quad_idx, vertex_idx in candidate.members:
            vertex_node[quad_idx, vertex_idx] = node

    graph: Graph = {node: set() for node in range(len(candidates))}
    for quad_idx in range(num_quads):
        for v in range(4):
            a = vertex_node[quad_idx, v]
            b = vertex_node[quad_idx, (v + 1) % 4]
            if a >= 0 and b >= 0 and a != b:
                graph[a].add(b)
                graph[b].add(a)
    return graph


def connected_components(graph: Graph) -> List[List[int]]:
    """Connected node sets, each sorted, in order of their smallest node"""
    seen = set()
    components = []
    for start in sorted(graph):
        if start in seen:
            continue
        component = []
        queue = deque([start])
        seen.add(start)
        while queue:
            node = queue.popleft()
            component.append(node)
            for neighbour in graph[node]:
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        components.append(sorted(component))
    return components


def validate_lattice(graph: Graph, nodes: List[int], width: int, height: int) -> Tuple[bool, str]:
    """
    Check the degree structure of a width x height grid graph.

    Returns:
        Tuple[bool, str]: (is_valid, error_message)
    """
    expected_nodes = width * height
    if len(nodes) != expected_nodes:
        return False, f"Expected {expected_nodes} corners, component has {len(nodes)}"

    degrees = np.array([len(graph[n]) for n in nodes])
    if degrees.max() > 4:
        return False, "Corner with more than 4 lattice neighbours"

    num_corners = int(np.sum(degrees == 2))
    if num_corners != 4:
        return False, f"Expected 4 lattice corners, found {num_corners}"

    expected_edges = width * (height - 1) + height * (width - 1)
    num_edges = int(degrees.sum()) // 2
    if num_edges != expected_edges:
        return False, f"Expected {expected_edges} lattice edges, found {num_edges}"

    return True, ""


def choose_start(points: np.ndarray, corner_nodes: List[int]) -> int:
    """Lattice corner nearest the image origin (ties: smaller y, then smaller x)"""
    def key(node):
        x, y = points[node]
        return (round(float(np.hypot(x, y)), 6), float(y), float(x))
    return min(corner_nodes, key=key)


def walk_side(graph: Graph, points: np.ndarray, start: int, first: int) -> List[int]:
    """
    Follow a lattice side from a corner until the next corner.

    At every step the walk continues to the unvisited neighbour best aligned
    with the previous step, which under perspective is still the next node of
    the same grid line.
    """
    path = [start, first]
    visited = {start, first}
    limit = len(graph)
    while len(graph[path[-1]]) != 2:
        if len(path) > limit:
            return []
        prev, cur = path[-2], path[-1]
        direction = points[cur] - points[prev]
        direction = direction / (np.linalg.norm(direction) + 1e-12)
        best, best_score = None, -np.inf
        for neighbour in graph[cur]:
            if neighbour in visited:
                continue
            step = points[neighbour] - points[cur]
            score = float(step @ direction) / (np.linalg.norm(step) + 1e-12)
            if score > best_score:
                best, best_score = neighbour, score
        if best is None:
            return []
        path.append(best)
        visited.add(best)
    return path


def _horizontalness(points: np.ndarray, path: List[int]) -> Tuple[float, float]:
    step = points[path[1]] - points[path[0]]
    return (abs(float(step[0])) / (np.linalg.norm(step) + 1e-12), float(step[0]))


def order_lattice(graph: Graph, points: np.ndarray, nodes: List[int],
                  width: int, height: int) -> Tuple[Optional[np.ndarray], str]:
    """
    Assign every node of a validated component its (row, column) position.

    Args:
        graph: Adjacency sets
        points: (N, 2) candidate positions
        nodes: Nodes of the component
        width: Corners per row
        height: Corners per column

    Returns:
        ((height, width) array of node indices, "") or (None, reason)
    """
    corner_nodes = [n for n in nodes if len(graph[n]) == 2]
    start = choose_start(points, corner_nodes)

    side_a, side_b = (walk_side(graph, points, start, n) for n in sorted(graph[start]))
    if not side_a or not side_b:
        return None, "Lattice side walk did not reach a corner"

    lengths = sorted((len(side_a), len(side_b)))
    if lengths != sorted((width, height)):
        return None, f"Lattice sides are {lengths[0]}x{lengths[1]}, expected {width}x{height}"

    if width != height:
        row, column = (side_a, side_b) if len(side_a) == width else (side_b, side_a)
    else:
        row, column = (side_a, side_b) \
            if _horizontalness(points, side_a) >= _horizontalness(points, side_b) \
            else (side_b, side_a)

    grid = np.full((height, width), -1, dtype=int)
    grid[0, :] = row
    grid[:, 0] = column

    for i in range(1, height):
        for j in range(1, width):
            common = (graph[grid[i, j - 1]] & graph[grid[i - 1, j]]) - {grid[i - 1, j - 1]}
            if len(common) != 1:
                return None, f"Lattice is not a regular grid at row {i}, column {j}"
            grid[i, j] = common.pop()

    if len(set(grid.ravel().tolist())) != width * height or set(grid.ravel().tolist()) != set(nodes):
        return None, "Lattice assignment is not one-to-one"

    return grid, ""


def assemble_lattice(candidates: List[CornerCandidate], quads: List[Quad],
                     width: int, height: int) -> Tuple[Optional[np.ndarray], str]:
    """
    Build, validate and order the internal-corner lattice.

    Components of the wrong size are ignored, so stray blobs away from the
    board do not spoil detection; a partially visible board has no component
    of the right size and is rejected.

    Args:
        candidates: Corner candidates
        quads: Quads the candidates refer to
        width: Corners per row
        height: Corners per column

    Returns:
        ((width*height, 2) corners in row-major order, "") or (None, reason)
    """
    if len(candidates) < width * height:
        return None, f"Only {len(candidates)} corner candidates, need {width * height}"

    graph = build_adjacency(candidates, len(quads))
    points = np.array([c.point for c in candidates], dtype=np.float64)

    reason = f"No connected lattice of {width * height} corners"
    for component in connected_components(graph):
        if len(component) != width * height:
            continue
        is_valid, reason = validate_lattice(graph, component, width, height)
        if not is_valid:
            continue
        grid, reason = order_lattice(graph, points, component, width, height)
        if grid is not None:
            return points[grid.ravel()], ""

    return None, reason
