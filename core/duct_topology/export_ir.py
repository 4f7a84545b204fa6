"""Export the topology result as the canonical JSON IR."""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import json
import math
import logging
from shapely.geometry.base import BaseGeometry

from .boundaries import Boundary
from .cells import Cell
from .metrics import DISTANCE_TO_BOUNDARIES, IS_IN_MONOLAYER
from .clustering import PARENT_ID
from .results import TopologyResult
from .schemas import (
    BoundaryRecord,
    CellRecord,
    DuctParameters,
    DuctRecord,
    Provenance,
    TopologyIR,
)

logger = logging.getLogger(__name__)

IR_VERSION = "1.0"


def _ring(coords) -> List[List[float]]:
    return [[float(x), float(y)] for x, y in coords]


def polygon_to_geojson(geom: BaseGeometry) -> Dict[str, Any]:
    """GeoJSON-like dict for a Polygon or MultiPolygon."""
    if geom.geom_type == 'Polygon':
        return {
            'type': 'Polygon',
            'coordinates': [_ring(geom.exterior.coords)] + [_ring(i.coords) for i in geom.interiors]
        }
    if geom.geom_type == 'MultiPolygon':
        return {
            'type': 'MultiPolygon',
            'coordinates': [
                [_ring(p.exterior.coords)] + [_ring(i.coords) for i in p.interiors]
                for p in geom.geoms
            ]
        }
    raise ValueError(f"Unsupported geometry type for IR export: {geom.geom_type}")


def _finite(measurements: Mapping[str, float]) -> Dict[str, Optional[float]]:
    """Measurements with NaN replaced by None, which JSON writes as null."""
    return {name: None if math.isnan(value) else value for name, value in measurements.items()}


def _boundary_record(boundary: Boundary, index: int) -> BoundaryRecord:
    return BoundaryRecord(
        id=f"{boundary.kind}_{boundary.parent_id}_{index}",
        parent_id=boundary.parent_id,
        kind=boundary.kind,
        threshold=boundary.threshold,
        cell_ids=list(boundary.cells),
        polygon=polygon_to_geojson(boundary.polygon),
        measurements=_finite(boundary.measurements)
    )


def build_topology_ir(
    result: TopologyResult,
    cells: Sequence[Cell],
    parameters: DuctParameters,
    source: Dict[str, Any]
) -> TopologyIR:
    """
    Assemble the IR from a compute result.

    Args:
        result: Output of DuctStructureComputer.compute
        cells: All input cells
        parameters: Parameters the result was computed with
        source: Loader result providing source_filename, source_hash and
            import_timestamp

    Returns:
        TopologyIR model
    """
    provenance = Provenance(
        source_filename=source.get('source_filename', ''),
        source_sha256=source.get('source_hash', ''),
        import_timestamp=source.get('import_timestamp', ''),
        parameters=parameters.model_dump()
    )

    cell_records = []
    for cell in cells:
        m = cell.measurements
        cell_records.append(CellRecord(
            id=cell.id,
            source_id=cell.source_id,
            xy=[cell.x, cell.y],
            class_name=cell.class_name,
            parent_id=int(m[PARENT_ID]) if PARENT_ID in m else None,
            distance_to_boundaries=int(m[DISTANCE_TO_BOUNDARIES]) if DISTANCE_TO_BOUNDARIES in m else None,
            is_in_monolayer=bool(m[IS_IN_MONOLAYER]) if IS_IN_MONOLAYER in m else None
        ))

    duct_records = [
        DuctRecord(
            id=duct.id,
            cell_ids=list(duct.cell_ids),
            polygon=polygon_to_geojson(duct.polygon),
            measurements=_finite(duct.measurements)
        )
        for duct in result.ducts
    ]

    holes = []
    perimeters = []
    for duct in result.ducts:
        holes.extend(_boundary_record(h, i) for i, h in enumerate(duct.holes))
        perimeters.extend(_boundary_record(p, i) for i, p in enumerate(duct.perimeters))

    connections = sorted([min(u, v), max(u, v)] for u, v in result.connectivity.edges())

    return TopologyIR(
        version=IR_VERSION,
        provenance=provenance,
        cells=cell_records,
        ducts=duct_records,
        holes=holes,
        perimeters=perimeters,
        connections=connections
    )


def export_topology_ir(topology_ir: TopologyIR, output_path: str) -> None:
    """Export TopologyIR to JSON file."""
    with open(output_path, 'w') as f:
        json.dump(topology_ir.model_dump(), f, indent=2, allow_nan=False)
    logger.info("Topology IR exported to %s: %d ducts, %d holes",
                output_path, len(topology_ir.ducts), len(topology_ir.holes))
