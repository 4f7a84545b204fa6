"""Group filtered cells into ducts: connected components of the duct-level graph."""

from typing import Iterable, List, Sequence
import logging
import networkx as nx
from shapely.geometry.base import BaseGeometry

from .cells import Cell
from .geometry import cell_footprint, union_of_hulls
from .results import Duct

logger = logging.getLogger(__name__)

DUCT_ID = "id"
PARENT_ID = "parent id"


def filter_cells(cells: Sequence[Cell], excluded_classes: Iterable[str]) -> List[Cell]:
    """Drop cells whose class is excluded. Unclassified cells are kept."""
    excluded = set(excluded_classes)
    kept = [cell for cell in cells if cell.class_name not in excluded]
    logger.debug("filter_cells: kept %d of %d cells (excluded: %s)",
                 len(kept), len(cells), sorted(excluded))
    return kept


def build_duct_polygon(cells: Sequence[Cell], default_cell_radius: float) -> BaseGeometry:
    """
    Union of the convex hulls of every member footprint, healed with buffer(0).

    Raises:
        GeometryError: if the union fails or is empty
    """
    return union_of_hulls(cell_footprint(cell, default_cell_radius) for cell in cells)


def cluster_ducts(
    cells: Sequence[Cell],
    graph: nx.Graph,
    min_cell_size: int,
    default_cell_radius: float = 5.0
) -> List[Duct]:
    """
    Partition cells into ducts.

    Components of ``graph`` restricted to ``cells`` with fewer than
    ``min_cell_size`` members are discarded. Survivors are ordered by their
    smallest cell id and numbered 0..n-1. The duct id is written as "id" on
    the duct and as "parent id" on each member cell.

    Args:
        cells: Filtered cells (excluded classes already removed)
        graph: Duct-level proximity graph
        min_cell_size: Minimum number of cells in a duct
        default_cell_radius: Footprint radius for cells without outlines

    Returns:
        Ducts in id order
    """
    lookup = {cell.id: cell for cell in cells}
    subgraph = graph.subgraph(lookup.keys())
    # Cells missing from the graph are isolated components
    components = [set(c) for c in nx.connected_components(subgraph)]
    components.extend({cell_id} for cell_id in lookup if cell_id not in subgraph)

    kept = [sorted(c) for c in components if len(c) >= min_cell_size]
    kept.sort(key=lambda member_ids: member_ids[0])
    logger.debug("cluster_ducts: %d components, %d with >= %d cells",
                 len(components), len(kept), min_cell_size)

    ducts = []
    for duct_id, member_ids in enumerate(kept):
        members = [lookup[i] for i in member_ids]
        polygon = build_duct_polygon(members, default_cell_radius)
        duct = Duct(id=duct_id, cell_ids=member_ids, polygon=polygon)
        duct.measurements[DUCT_ID] = float(duct_id)
        for cell in members:
            cell.measurements[PARENT_ID] = float(duct_id)
        ducts.append(duct)

    logger.info(f"Clustered {len(lookup)} cells into {len(ducts)} duct(s)")
    return ducts
