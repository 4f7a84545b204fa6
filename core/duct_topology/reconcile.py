"""Merge the boundaries traced at successive thresholds into one set per duct."""

from dataclasses import dataclass, field
from typing import List, Mapping, Sequence, Set, Tuple
import logging
import math
import networkx as nx

from .boundaries import Boundary, trace_boundaries
from .geometry import Point2, polygon_covers
from .proximity import ProximityGraphs
from .refine import collect_refinements, refine_boundary

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    boundaries: List[Boundary]
    zero_distance_cells: Set[int] = field(default_factory=set)

    @property
    def holes(self) -> List[Boundary]:
        return [b for b in self.boundaries if b.is_hole]

    @property
    def perimeters(self) -> List[Boundary]:
        return [b for b in self.boundaries if not b.is_hole]


def threshold_passes(
    graphs: ProximityGraphs,
    holes_min_distances: Sequence[float],
    duct_max_distance: float
) -> List[Tuple[float, nx.Graph]]:
    """
    Ordered (threshold, graph) passes: every hole threshold ascending, then the
    duct-level graph when the largest hole threshold is not the duct threshold.

    Raises:
        ConfigurationError: if a threshold has no graph
    """
    thresholds = sorted(holes_min_distances)
    passes = [(t, graphs.graph(t)) for t in thresholds]
    if thresholds[-1] != duct_max_distance:
        passes.append((duct_max_distance, graphs.graph(duct_max_distance)))
    return passes


def find_boundaries(
    cell_ids: Sequence[int],
    passes: Sequence[Tuple[float, nx.Graph]],
    positions: Mapping[int, Point2],
    holes_min_cell_size: int,
    refine: bool = True,
    min_angle_rad: float = math.radians(120.0)
) -> ReconcileResult:
    """
    Trace, refine and filter the boundaries of one duct across all passes.

    Per pass: loops shorter than ``holes_min_cell_size`` are dropped, cells of
    the remaining loops are recorded at distance 0, perimeters are dropped
    unless this is the last pass, and holes covered by a boundary accepted in
    an earlier pass are dropped.

    Args:
        cell_ids: Cells of the duct
        passes: Output of threshold_passes
        positions: Centroid of every cell id
        holes_min_cell_size: Minimum loop size
        refine: Splice obtuse triangle vertices into the loops
        min_angle_rad: Smallest triangle angle that triggers refinement

    Returns:
        Accepted boundaries in pass order and the zero-distance cells
    """
    accepted: List[Boundary] = []
    zero_cells: Set[int] = set()
    for index, (threshold, graph) in enumerate(passes):
        keep_perimeters = index == len(passes) - 1
        traced = trace_boundaries(cell_ids, graph, positions, threshold)
        current = traced.boundaries

        if refine:
            refinements = collect_refinements(traced.triangles, positions, min_angle_rad)
            if refinements:
                current = [refine_boundary(b, refinements, positions)[0] for b in current]

        current = [b for b in current if len(b.cells) >= holes_min_cell_size]
        for boundary in current:
            zero_cells.update(boundary.cells)

        if not keep_perimeters:
            current = [b for b in current if b.is_hole]

        previous = list(accepted)
        current = [
            b for b in current
            if not b.is_hole or not any(polygon_covers(p.polygon, b.polygon) for p in previous)
        ]
        accepted.extend(current)
        logger.debug("find_boundaries: threshold=%.2f accepted %d loop(s), %d total",
                     threshold, len(current), len(accepted))

    return ReconcileResult(accepted, zero_cells)
