"""Duct structure computation: clustering, boundaries, distance field and measurements."""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging
import time
import networkx as nx

from .boundaries import Boundary
from .cells import Cell, cell_positions, cells_by_id
from .clustering import PARENT_ID, cluster_ducts, filter_cells
from .errors import GeometryError
from .geometry import Point2
from .metrics import (
    DISTANCE_TO_BOUNDARIES,
    IS_IN_MONOLAYER,
    compute_distance_field,
    measure_boundary,
    measure_duct,
    write_cell_measurements,
)
from .proximity import ProximityGraphs, build_proximity_graphs
from .reconcile import find_boundaries, threshold_passes
from .results import Duct, ResultStore, TopologyResult
from .schemas import DuctParameters

logger = logging.getLogger(__name__)


class DuctStructureComputer:
    """
    Computes ducts, their holes and perimeters, and per-cell layering.

    Each ``compute`` call returns its own TopologyResult and, on success,
    publishes holes, perimeters and connectivity to ``store``. A failed call
    publishes nothing; readers of the store keep the previous snapshot.
    """

    def __init__(self, parameters: Optional[DuctParameters] = None,
                 store: Optional[ResultStore] = None):
        self.parameters = parameters if parameters is not None else DuctParameters()
        self.store = store if store is not None else ResultStore()

    def compute(
        self,
        cells: Sequence[Cell],
        graphs: Optional[ProximityGraphs] = None
    ) -> TopologyResult:
        """
        Run the whole computation on a cell set.

        Args:
            cells: All cells, excluded classes included
            graphs: Proximity graphs holding every hole threshold and the duct
                threshold; built from Delaunay over the filtered cells if None

        Returns:
            TopologyResult with ducts in id order

        Raises:
            ConfigurationError: graphs missing a threshold, duplicate cell ids
            GeometryError: degenerate geometry, duct without perimeter
            InvariantViolation: a boundary walk or refinement did not terminate
        """
        t0 = time.time()
        self.store.begin()
        try:
            result = self._compute(cells, graphs)
        except Exception as e:
            self.store.discard()
            logger.error(f"Duct structure computation failed: {e}", exc_info=True)
            raise
        self.store.publish(result.connectivity)
        logger.info(f"Computed {len(result.ducts)} duct(s), {len(result.holes)} hole(s), "
                    f"{len(result.perimeters)} perimeter(s) in {time.time() - t0:.2f}s")
        return result

    def _compute(self, cells: Sequence[Cell], graphs: Optional[ProximityGraphs]) -> TopologyResult:
        params = self.parameters
        lookup = cells_by_id(cells)
        self._warn_unknown_classes(cells)

        filtered = filter_cells(cells, params.excluded_classes)
        for cell in filtered:
            for key in (PARENT_ID, DISTANCE_TO_BOUNDARIES, IS_IN_MONOLAYER):
                cell.measurements.pop(key, None)

        if graphs is None:
            graphs = build_proximity_graphs(
                filtered, list(params.holes_min_distances) + [params.duct_max_distance]
            )
        duct_graph = graphs.graph(params.duct_max_distance)
        passes = threshold_passes(graphs, params.holes_min_distances, params.duct_max_distance)
        logger.debug("_compute: passes at thresholds %s", [t for t, _ in passes])

        ducts = cluster_ducts(filtered, duct_graph, params.duct_min_cell_size,
                              params.default_cell_radius)
        if params.measure and ducts:
            positions = cell_positions(filtered)
            self._measure_ducts(ducts, lookup, passes, positions, duct_graph)

        connectivity = nx.freeze(nx.Graph(duct_graph.subgraph([c.id for c in filtered])))
        holes = [h for d in ducts for h in d.holes]
        perimeters = [p for d in ducts for p in d.perimeters]
        return TopologyResult(ducts, holes, perimeters, connectivity)

    def _warn_unknown_classes(self, cells: Sequence[Cell]) -> None:
        present = {cell.class_name for cell in cells}
        for name in list(self.parameters.excluded_classes) + list(self.parameters.duct_classes):
            if name not in present:
                logger.warning(f"Class '{name}' does not occur in the {len(cells)} input cells")

    def _measure_ducts(
        self,
        ducts: List[Duct],
        lookup: Mapping[int, Cell],
        passes: List[Tuple[float, nx.Graph]],
        positions: Mapping[int, Point2],
        duct_graph: nx.Graph
    ) -> None:
        max_workers = self.parameters.max_workers
        logger.debug("_measure_ducts: %d duct(s), max_workers=%s", len(ducts), max_workers)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self._measure_duct, duct, [lookup[i] for i in duct.cell_ids],
                                passes, positions, duct_graph)
                for duct in ducts
            ]
            for future in futures:
                future.result()

    def _measure_duct(
        self,
        duct: Duct,
        members: List[Cell],
        passes: List[Tuple[float, nx.Graph]],
        positions: Mapping[int, Point2],
        duct_graph: nx.Graph
    ) -> None:
        params = self.parameters
        reconciled = find_boundaries(
            duct.cell_ids, passes, positions, params.holes_min_cell_size,
            params.refine_boundaries, params.triangle_to_refine_min_angle_rad
        )
        holes = reconciled.holes
        perimeters = reconciled.perimeters
        if not perimeters:
            raise GeometryError(
                f"Duct {duct.id} ({len(duct.cell_ids)} cells) has no perimeter "
                f"at threshold {passes[-1][0]}"
            )
        if len(perimeters) > 1:
            logger.warning(f"Duct {duct.id} has {len(perimeters)} perimeters, keeping the first")
        perimeter = perimeters[0]

        for boundary in holes + [perimeter]:
            boundary.parent_id = duct.id
            measure_boundary(boundary, params)

        field = compute_distance_field(duct.cell_ids, reconciled.boundaries,
                                       reconciled.zero_distance_cells, duct_graph)
        write_cell_measurements(members, field)
        measure_duct(duct, members, holes, perimeter, field, params)

        duct.holes = holes
        duct.perimeters = [perimeter]
        duct.distance_field = field
        self.store.append(duct.id, holes, [perimeter])

    def group_by_duct(self, ducts: Sequence[Duct]) -> Dict[int, Tuple[List[Boundary], List[Boundary]]]:
        """
        Re-associate the published holes and perimeters with their ducts.

        Boundaries are matched on parent id and assigned to ``duct.holes`` and
        ``duct.perimeters``.

        Returns:
            duct id -> (holes, perimeters)
        """
        snapshot = self.store.snapshot()
        grouped = {}
        for duct in ducts:
            holes = [h for h in snapshot.holes if h.parent_id == duct.id]
            perimeters = [p for p in snapshot.perimeters if p.parent_id == duct.id]
            duct.holes = holes
            duct.perimeters = perimeters
            grouped[duct.id] = (holes, perimeters)
        return grouped
