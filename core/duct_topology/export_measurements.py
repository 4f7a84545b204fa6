"""Export duct and cell measurements as CSV tables."""

from typing import Dict, Iterable, List, Sequence
import csv
import logging
import math

from .cells import Cell
from .clustering import PARENT_ID
from .metrics import DISTANCE_TO_BOUNDARIES, IS_IN_MONOLAYER
from .results import Duct

logger = logging.getLogger(__name__)


def _columns(tables: Iterable[Dict[str, float]]) -> List[str]:
    """Measurement names in order of first appearance."""
    columns: Dict[str, None] = {}
    for table in tables:
        for name in table:
            columns.setdefault(name, None)
    return list(columns)


def _format(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if value.is_integer():
            return str(int(value))
        return f"{value:.6g}"
    return str(value)


def export_duct_measurements_csv(ducts: Sequence[Duct], output_path: str) -> None:
    """
    One row per duct: duct id, cell/hole counts, then every duct measurement.
    """
    logger.info("Exporting duct measurements CSV to: %s", output_path)
    columns = _columns(d.measurements for d in ducts)

    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['duct_id', 'n_cells', 'n_holes', 'n_perimeters'] + columns)
        for duct in ducts:
            writer.writerow(
                [duct.id, len(duct.cell_ids), len(duct.holes), len(duct.perimeters)]
                + [_format(duct.measurements.get(name)) for name in columns]
            )

    logger.info("Duct measurements CSV exported: %d ducts", len(ducts))


def export_cell_measurements_csv(
    cells: Sequence[Cell],
    output_path: str,
    names: Sequence[str] = (PARENT_ID, DISTANCE_TO_BOUNDARIES, IS_IN_MONOLAYER)
) -> None:
    """
    One row per cell: id, source id, class, centroid, then the named measurements.

    Args:
        cells: Cells to export
        output_path: Output CSV file path
        names: Measurement names to export; missing values are left empty
    """
    logger.info("Exporting cell measurements CSV to: %s", output_path)

    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['cell_id', 'source_id', 'class', 'x', 'y'] + list(names))
        for cell in cells:
            writer.writerow(
                [cell.id, cell.source_id or '', cell.class_name or '',
                 f"{cell.x:.3f}", f"{cell.y:.3f}"]
                + [_format(cell.measurements.get(name)) for name in names]
            )

    logger.info("Cell measurements CSV exported: %d cells", len(cells))
