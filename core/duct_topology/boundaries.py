"""Closed boundary loops of a duct, traced on a proximity graph by rightmost turns."""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set
import logging
import networkx as nx
from shapely.geometry import Polygon

from .errors import InvariantViolation
from .geometry import Point2, is_right_of, loop_polygon, signed_area

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrientedEdge:
    """Directed pair of cell ids; (a, b) != (b, a)."""
    start: int
    end: int

    def opposite(self) -> 'OrientedEdge':
        return OrientedEdge(self.end, self.start)

    def is_right(self, cell: int, positions: Mapping[int, Point2]) -> bool:
        """True if ``cell`` lies strictly right of the line start -> end."""
        return is_right_of(positions[self.start], positions[self.end], positions[cell])


@dataclass
class Boundary:
    """Closed loop of cells bounding a hole or the outer perimeter of a duct."""
    cells: List[int]
    is_hole: bool
    polygon: Polygon
    threshold: Optional[float] = None  # Proximity threshold the loop was traced at
    parent_id: Optional[int] = None  # Owning duct
    measurements: Dict[str, float] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return "hole" if self.is_hole else "perimeter"

    def edges(self) -> List[OrientedEdge]:
        n = len(self.cells)
        return [OrientedEdge(self.cells[i], self.cells[(i + 1) % n]) for i in range(n)]


@dataclass
class Loop:
    """Traced loop too short to be a boundary, kept for refinement."""
    cells: List[int]
    is_hole: bool


@dataclass
class TraceResult:
    boundaries: List[Boundary]
    triangles: List[Loop]


def is_clockwise(cells: Sequence[int], positions: Mapping[int, Point2]) -> bool:
    return signed_area([positions[c] for c in cells]) < 0


def make_boundary(
    cells: Sequence[int],
    positions: Mapping[int, Point2],
    threshold: Optional[float] = None,
    is_hole: Optional[bool] = None
) -> Boundary:
    """
    Build a boundary from an ordered loop of cell ids.

    ``is_hole`` defaults to the loop orientation: clockwise loops are holes.
    """
    points = [positions[c] for c in cells]
    if is_hole is None:
        is_hole = signed_area(points) < 0
    return Boundary(cells=list(cells), is_hole=is_hole, polygon=loop_polygon(points),
                    threshold=threshold)


def directed_edges(cell_ids: Sequence[int], graph: nx.Graph) -> List[OrientedEdge]:
    """
    Both orientations of every graph edge inside the cell set.

    Cells are taken in ascending id order and neighbors in graph order; each
    directed edge is listed once, at its first occurrence.
    """
    members = set(cell_ids)
    edges: Dict[OrientedEdge, None] = {}
    for cell in sorted(members):
        if cell not in graph:
            continue
        for neighbor in graph.neighbors(cell):
            if neighbor == cell or neighbor not in members:
                continue
            edges.setdefault(OrientedEdge(cell, neighbor), None)
            edges.setdefault(OrientedEdge(neighbor, cell), None)
    return list(edges)


def rightmost_edge(
    edge: OrientedEdge,
    graph: nx.Graph,
    members: Set[int],
    positions: Mapping[int, Point2]
) -> OrientedEdge:
    """
    Next edge of the walk: the sharpest right turn out of ``edge.end``.

    The first candidate is the initial best. While the best lies right of the
    incoming edge, a candidate replaces it only if it is right of both the
    incoming edge and the best; otherwise right of either is enough. Without
    any candidate the walk turns back along the opposite edge.
    """
    best = None
    best_on_right = False
    for neighbor in graph.neighbors(edge.end):
        if neighbor == edge.start or neighbor == edge.end or neighbor not in members:
            continue
        right_of_edge = edge.is_right(neighbor, positions)
        if best is None:
            take = True
        elif best_on_right:
            take = right_of_edge and best.is_right(neighbor, positions)
        else:
            take = right_of_edge or best.is_right(neighbor, positions)
        if take:
            best = OrientedEdge(edge.end, neighbor)
            best_on_right = right_of_edge
    if best is None:
        return edge.opposite()
    return best


def walk_loop(
    start: OrientedEdge,
    graph: nx.Graph,
    members: Set[int],
    positions: Mapping[int, Point2],
    visited: Dict[OrientedEdge, bool]
) -> List[int]:
    """
    Follow rightmost turns from ``start`` until the walk comes back to it.

    Every traversed edge is marked visited. The loop lists the end cell of
    each traversed edge.

    Raises:
        InvariantViolation: if the walk steps onto a visited edge other than
            ``start``; such a walk can never close
    """
    loop = []
    edge = start
    while True:
        visited[edge] = True
        loop.append(edge.end)
        following = rightmost_edge(edge, graph, members, positions)
        if following == start:
            return loop
        if visited.get(following, False):
            raise InvariantViolation(
                f"Boundary walk from {start} reached visited edge {following} "
                f"after {len(loop)} steps without closing"
            )
        edge = following


def trace_boundaries(
    cell_ids: Sequence[int],
    graph: nx.Graph,
    positions: Mapping[int, Point2],
    threshold: Optional[float] = None
) -> TraceResult:
    """
    Trace every closed loop of the graph restricted to ``cell_ids``.

    Each directed edge belongs to exactly one loop. Loops of more than three
    cells become boundaries, three-cell loops are returned as refinement
    candidates and shorter loops (dangling edges) are dropped. Clockwise
    loops are holes, the others perimeters.

    Args:
        cell_ids: Cells of one duct
        graph: Proximity graph at ``threshold``
        positions: Centroid of every cell id
        threshold: Threshold recorded on the resulting boundaries

    Returns:
        TraceResult with boundaries and triangles in discovery order
    """
    members = set(cell_ids)
    edges = directed_edges(cell_ids, graph)
    visited = {edge: False for edge in edges}

    boundaries = []
    triangles = []
    dropped = 0
    for edge in edges:
        if visited[edge]:
            continue
        loop = walk_loop(edge, graph, members, positions, visited)
        if len(loop) > 3:
            boundaries.append(make_boundary(loop, positions, threshold))
        elif len(loop) == 3:
            triangles.append(Loop(loop, is_clockwise(loop, positions)))
        else:
            dropped += 1

    logger.debug("trace_boundaries: threshold=%s, %d directed edges, %d boundaries, "
                 "%d triangles, %d dropped", threshold, len(edges), len(boundaries),
                 len(triangles), dropped)
    return TraceResult(boundaries, triangles)
