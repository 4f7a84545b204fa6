"""Push boundaries out around obtuse triangular holes."""

from typing import Dict, List, Mapping, Tuple
import logging

from .boundaries import Boundary, Loop, OrientedEdge, make_boundary
from .errors import InvariantViolation
from .geometry import Point2, triangle_angles

logger = logging.getLogger(__name__)


def collect_refinements(
    triangles: List[Loop],
    positions: Mapping[int, Point2],
    min_angle_rad: float
) -> Dict[OrientedEdge, int]:
    """
    Map boundary edges to the cell that should be spliced into them.

    For every clockwise triangle whose angle at cell ``c[i]`` reaches
    ``min_angle_rad`` (first such angle only), the edge ``(c[i+2], c[i+1])``
    seen from the neighboring face is mapped to ``c[i]``. Counter-clockwise
    triangles are never refined.
    """
    refinements = {}
    for triangle in triangles:
        if not triangle.is_hole:
            continue
        cells = triangle.cells
        angles = triangle_angles(*(positions[c] for c in cells))
        for i in range(3):
            if angles[i] >= min_angle_rad:
                p1 = cells[(i + 1) % 3]
                p2 = cells[(i + 2) % 3]
                refinements[OrientedEdge(p2, p1)] = cells[i]
                break
    logger.debug("collect_refinements: %d of %d triangles refine an edge",
                 len(refinements), len(triangles))
    return refinements


def refine_boundary(
    boundary: Boundary,
    refinements: Mapping[OrientedEdge, int],
    positions: Mapping[int, Point2]
) -> Tuple[Boundary, int]:
    """
    Splice refinement cells into a boundary until nothing changes.

    Each pass walks the loop's edges in order and inserts the mapped cell
    between the two ends of every matching edge. The loop keeps its first
    cell and its hole flag.

    Returns:
        (refined boundary, number of passes including the final unchanged one).
        The input boundary is returned as is when no edge matches.

    Raises:
        InvariantViolation: if no fixed point is reached within
            len(refinements) + 1 passes
    """
    max_passes = len(refinements) + 1
    cells = list(boundary.cells)
    passes = 0
    while True:
        passes += 1
        if passes > max_passes:
            raise InvariantViolation(
                f"Boundary refinement did not converge after {max_passes} passes "
                f"({len(cells)} cells)"
            )
        refined = []
        changed = False
        n = len(cells)
        for i, cell in enumerate(cells):
            refined.append(cell)
            substitute = refinements.get(OrientedEdge(cell, cells[(i + 1) % n]))
            if substitute is not None:
                refined.append(substitute)
                changed = True
        if not changed:
            break
        cells = refined

    if passes == 1:
        return boundary, passes
    logger.debug("refine_boundary: %d -> %d cells in %d passes",
                 len(boundary.cells), len(cells), passes)
    refined_boundary = make_boundary(cells, positions, boundary.threshold, boundary.is_hole)
    refined_boundary.parent_id = boundary.parent_id
    return refined_boundary, passes
