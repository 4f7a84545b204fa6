"""Proximity graphs over cells, one per boundary-distance threshold."""

from typing import Dict, List, Mapping, Sequence, Tuple, Iterable
import itertools
import logging
import math
import networkx as nx
import numpy as np
from scipy.spatial import Delaunay, QhullError
from shapely.errors import GEOSException

from .cells import Cell
from .errors import ConfigurationError, GeometryError
from .geometry import proximity_outline

logger = logging.getLogger(__name__)


class ProximityGraphs:
    """
    Family of neighbor graphs ordered by ascending distance threshold.

    Each graph is a frozen ``networkx.Graph`` whose nodes are cell ids.
    Neighbor iteration follows insertion order.
    """

    def __init__(self, graphs: Mapping[float, nx.Graph]):
        thresholds = sorted(float(t) for t in graphs)
        if len(set(thresholds)) != len(thresholds):
            raise ConfigurationError("Proximity graph thresholds must be distinct")
        self._thresholds: Tuple[float, ...] = tuple(thresholds)
        self._graphs: Dict[float, nx.Graph] = {}
        for threshold, graph in graphs.items():
            self._graphs[float(threshold)] = graph if nx.is_frozen(graph) else nx.freeze(graph.copy())

    @classmethod
    def from_neighbor_maps(
        cls,
        neighbor_maps: Mapping[float, Mapping[int, Sequence[int]]]
    ) -> 'ProximityGraphs':
        """
        Wrap externally computed neighbor maps (cell id -> neighboring cell ids).

        Maps are symmetrized: a pair listed in either direction becomes an edge.
        """
        graphs = {}
        for threshold, neighbors in neighbor_maps.items():
            graph = nx.Graph()
            graph.add_nodes_from(neighbors.keys())
            for cell_id, cell_neighbors in neighbors.items():
                for neighbor in cell_neighbors:
                    if neighbor != cell_id:
                        graph.add_edge(cell_id, neighbor)
            graphs[threshold] = graph
        return cls(graphs)

    @property
    def thresholds(self) -> Tuple[float, ...]:
        return self._thresholds

    def __contains__(self, threshold: float) -> bool:
        return float(threshold) in self._graphs

    def graph(self, threshold: float) -> nx.Graph:
        """Graph at an exact threshold."""
        try:
            return self._graphs[float(threshold)]
        except KeyError:
            raise ConfigurationError(
                f"No proximity graph for threshold {threshold}; available: {list(self._thresholds)}"
            ) from None

    def neighbors(self, threshold: float, cell_id: int) -> List[int]:
        graph = self.graph(threshold)
        if cell_id not in graph:
            return []
        return list(graph.neighbors(cell_id))

    def neighbor_map(self, threshold: float) -> Dict[int, List[int]]:
        graph = self.graph(threshold)
        return {n: list(graph.neighbors(n)) for n in graph.nodes()}


def delaunay_pairs(cells: Sequence[Cell]) -> List[Tuple[int, int]]:
    """
    Delaunay edges over cell centroids as sorted (id, id) pairs.

    Fewer than three cells are connected pairwise.

    Raises:
        GeometryError: if qhull rejects the point set (e.g. all collinear)
    """
    if len(cells) < 2:
        return []
    if len(cells) < 3:
        return sorted(tuple(sorted((a.id, b.id))) for a, b in itertools.combinations(cells, 2))

    points = np.array([[c.x, c.y] for c in cells], dtype=float)
    try:
        tri = Delaunay(points)
    except QhullError as e:
        raise GeometryError(f"Delaunay triangulation failed for {len(cells)} cells: {e}") from e

    indptr, indices = tri.vertex_neighbor_vertices
    pairs = set()
    for i in range(len(cells)):
        for j in indices[indptr[i]:indptr[i + 1]]:
            a, b = cells[i].id, cells[int(j)].id
            if a != b:
                pairs.add((min(a, b), max(a, b)))
    return sorted(pairs)


def boundary_distance(a: Cell, b: Cell) -> float:
    """Distance between two cell outlines, falling back to centroid distance."""
    outline_a = proximity_outline(a)
    outline_b = proximity_outline(b)
    if outline_a is None or outline_b is None:
        return math.hypot(b.x - a.x, b.y - a.y)
    try:
        return float(outline_a.distance(outline_b))
    except GEOSException as e:
        raise GeometryError(f"Outline distance failed between cells {a.id} and {b.id}: {e}") from e


def build_proximity_graphs(
    cells: Sequence[Cell],
    thresholds: Iterable[float]
) -> ProximityGraphs:
    """
    Build one neighbor graph per threshold from the Delaunay triangulation.

    A Delaunay edge is kept at threshold t when the boundary distance between
    its two cells is <= t. Every graph contains every cell as a node, edges
    are inserted in ascending (id, id) order.

    Args:
        cells: Cells to connect
        thresholds: Boundary distance thresholds

    Returns:
        ProximityGraphs with one frozen graph per distinct threshold
    """
    thresholds = sorted(set(float(t) for t in thresholds))
    pairs = delaunay_pairs(cells)
    lookup = {cell.id: cell for cell in cells}
    distances = [(a, b, boundary_distance(lookup[a], lookup[b])) for a, b in pairs]
    logger.debug("build_proximity_graphs: %d cells, %d Delaunay edges", len(cells), len(pairs))

    node_ids = sorted(lookup)
    graphs = {}
    for threshold in thresholds:
        graph = nx.Graph()
        graph.add_nodes_from(node_ids)
        graph.add_edges_from((a, b) for a, b, d in distances if d <= threshold)
        graphs[threshold] = graph
        logger.debug("  threshold %.2f: %d edges", threshold, graph.number_of_edges())

    logger.info(f"Built {len(graphs)} proximity graph(s) over {len(cells)} cells")
    return ProximityGraphs(graphs)
