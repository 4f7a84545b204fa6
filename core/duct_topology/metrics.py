"""Distance to boundaries, monolayer flags and per-duct statistics."""

from collections import deque
from typing import Iterable, List, Sequence, Set
import logging
import math
import networkx as nx

from .boundaries import Boundary
from .cells import Cell
from .clustering import PARENT_ID
from .geometry import shape_measurements, solidity
from .results import DistanceField, Duct
from .schemas import DuctParameters

logger = logging.getLogger(__name__)

DISTANCE_TO_BOUNDARIES = "Distance to boundaries"
IS_IN_MONOLAYER = "Is in monolayer"


def compute_distance_field(
    cell_ids: Sequence[int],
    boundaries: Iterable[Boundary],
    zero_cells: Set[int],
    duct_graph: nx.Graph
) -> DistanceField:
    """
    Multi-source BFS from the zero-distance cells over the duct-level graph.

    Only edges between cells of the duct are followed. Cells the BFS never
    reaches keep distance -1. The boundary count of a cell is the number of
    distinct boundaries containing it.
    """
    members = set(cell_ids)
    distances = {cell_id: -1 for cell_id in cell_ids}
    queue = deque()
    for cell_id in sorted(members & set(zero_cells)):
        distances[cell_id] = 0
        queue.append(cell_id)

    while queue:
        current = queue.popleft()
        if current not in duct_graph:
            continue
        next_distance = distances[current] + 1
        for neighbor in duct_graph.neighbors(current):
            if neighbor not in members:
                continue
            if distances[neighbor] == -1 or distances[neighbor] > next_distance:
                distances[neighbor] = next_distance
                queue.append(neighbor)

    counts = {cell_id: 0 for cell_id in cell_ids}
    for boundary in boundaries:
        for cell_id in set(boundary.cells):
            if cell_id in counts:
                counts[cell_id] += 1

    unreached = sum(1 for d in distances.values() if d < 0)
    if unreached:
        logger.debug("compute_distance_field: %d of %d cells unreached", unreached, len(distances))
    return DistanceField(distances, counts)


def write_cell_measurements(cells: Iterable[Cell], field: DistanceField) -> None:
    for cell in cells:
        cell.measurements[DISTANCE_TO_BOUNDARIES] = float(field.distance(cell.id))
        cell.measurements[IS_IN_MONOLAYER] = 1.0 if field.is_in_monolayer(cell.id) else 0.0


def measure_boundary(boundary: Boundary, parameters: DuctParameters) -> None:
    """Parent id and calibrated shape measurements of one hole or perimeter."""
    if boundary.parent_id is not None:
        boundary.measurements[PARENT_ID] = float(boundary.parent_id)
    boundary.measurements["Number of cells"] = float(len(boundary.cells))
    boundary.measurements.update(shape_measurements(
        boundary.polygon, parameters.pixel_width_microns, parameters.pixel_height_microns
    ))


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else math.nan


def measure_duct(
    duct: Duct,
    cells: Sequence[Cell],
    holes: Sequence[Boundary],
    perimeter: Boundary,
    field: DistanceField,
    parameters: DuctParameters
) -> None:
    """
    Write shape, porosity and layering statistics on a duct.

    Shape descriptors (area, perimeter, circularity, solidity, max and min
    diameter) come from the duct polygon in microns. Other areas are converted
    to square microns with the pixel size; porosity is a ratio of pixel areas.
    Ratios with an empty denominator are NaN.

    Args:
        duct: Duct to measure
        cells: Member cells
        holes: Accepted holes of the duct
        perimeter: Outer perimeter of the duct
        field: Distance field of the duct
        parameters: Computation parameters
    """
    m = duct.measurements
    pixel_area = parameters.pixel_width_microns * parameters.pixel_height_microns
    shape = shape_measurements(duct.polygon, parameters.pixel_width_microns,
                               parameters.pixel_height_microns)
    area = shape["Area um^2"]
    n_cells = len(cells)

    m["Number of cells"] = float(n_cells)
    m.update(shape)
    m["Area per cell um^2"] = area / n_cells if n_cells else math.nan
    for class_name in parameters.duct_classes:
        n_class = sum(1 for cell in cells if cell.class_name == class_name)
        m[f"Area per cell um^2 - {class_name}"] = area / n_class if n_class else math.nan

    holes_area = sum(hole.polygon.area for hole in holes)
    perimeter_area = perimeter.polygon.area
    m["Number of holes"] = float(len(holes))
    m["Porosity"] = holes_area / perimeter_area if perimeter_area > 0 else math.nan
    m["Perimeter area um^2"] = perimeter_area * pixel_area
    m["Perimeter solidity"] = solidity(perimeter.polygon)

    monolayer = [float(field.distance(c.id)) for c in cells if field.is_in_monolayer(c.id)]
    others = [float(field.distance(c.id)) for c in cells if not field.is_in_monolayer(c.id)]
    all_distances = monolayer + others
    m["Number of monolayered cells"] = float(len(monolayer))
    m["Number of non-monolayered cells"] = float(len(others))
    m["Mean distance to borders (monolayered)"] = _mean(monolayer)
    m["Mean distance to borders (non-monolayered)"] = _mean(others)
    m["Mean cell distance to borders"] = _mean(all_distances)
    m["Number of cells (layer=0)"] = float(sum(1 for d in all_distances if d == 0))
    m["Number of cells (layer>0)"] = float(sum(1 for d in all_distances if d != 0))

    logger.debug("measure_duct: duct %d, %d cells, %d holes, porosity=%.3f",
                 duct.id, n_cells, len(holes), m["Porosity"])
