"""Cell import from GeoJSON detection exports."""

from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import hashlib
import json
import logging
from shapely.errors import GEOSException
from shapely.geometry import Polygon, shape
from shapely.geometry.base import BaseGeometry

from .cells import Cell

logger = logging.getLogger(__name__)


def _as_polygon(geometry: Optional[Dict[str, Any]]) -> Optional[Polygon]:
    """
    Convert a GeoJSON geometry to a polygon.

    MultiPolygons keep their largest part. Invalid shells are healed with
    buffer(0). Returns None for missing or non-areal geometry.
    """
    if not geometry:
        return None
    try:
        geom: BaseGeometry = shape(geometry)
        if not geom.is_valid:
            geom = geom.buffer(0)
    except (GEOSException, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Skipping unreadable geometry: {e}")
        return None
    if geom.is_empty:
        return None
    if geom.geom_type == 'MultiPolygon':
        geom = max(geom.geoms, key=lambda g: g.area)
    if geom.geom_type != 'Polygon':
        return None
    return geom


def _classification(properties: Dict[str, Any]) -> Optional[str]:
    classification = properties.get('classification')
    if isinstance(classification, dict):
        return classification.get('name')
    if isinstance(classification, str):
        return classification
    return None


def _measurements(properties: Dict[str, Any]) -> Dict[str, float]:
    """Measurements stored either as a dict or as a list of name/value entries."""
    raw = properties.get('measurements')
    result = {}
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, list):
        items = [(m.get('name'), m.get('value')) for m in raw if isinstance(m, dict)]
    else:
        return result
    for name, value in items:
        if name is None or value is None:
            continue
        try:
            result[str(name)] = float(value)
        except (TypeError, ValueError):
            continue
    return result


def _features(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if data.get('type') == 'FeatureCollection':
            return data.get('features', [])
        if data.get('type') == 'Feature':
            return [data]
    raise ValueError("GeoJSON must be a FeatureCollection, a Feature or a list of features")


def load_geojson_cells(file_path: str) -> dict:
    """
    Load cells from a GeoJSON detection export.

    Each feature becomes one cell. The feature geometry is the cell outline
    and ``nucleusGeometry`` (top level or in properties) the nucleus outline.
    Cell centroids are nucleus centroids when a nucleus is present.

    Args:
        file_path: Path to a .geojson / .json file

    Returns:
        Dictionary with:
        - cells: List of Cell objects, ids 0..n-1 in file order
        - classes: Sorted list of class names found
        - bounds: Bounding box dict of the centroids
        - source_hash: SHA256 hash of source file
        - source_filename: File name
        - import_timestamp: ISO timestamp of the import
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"GeoJSON file not found: {file_path}")

    logger.debug(f"Loading GeoJSON: {file_path}")
    with open(path, 'rb') as f:
        file_bytes = f.read()
        source_hash = hashlib.sha256(file_bytes).hexdigest()

    try:
        data = json.loads(file_bytes.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Failed to parse GeoJSON file: {e}")
        raise ValueError(f"Failed to parse GeoJSON file: {e}") from e

    cells = []
    skipped = 0
    for feature in _features(data):
        properties = feature.get('properties') or {}
        roi = _as_polygon(feature.get('geometry'))
        nucleus = _as_polygon(feature.get('nucleusGeometry') or properties.get('nucleusGeometry'))
        anchor = nucleus if nucleus is not None else roi
        if anchor is None:
            skipped += 1
            continue
        centroid = anchor.centroid
        source_id = feature.get('id')
        cells.append(Cell(
            id=len(cells),
            x=float(centroid.x),
            y=float(centroid.y),
            class_name=_classification(properties),
            roi=roi,
            nucleus=nucleus,
            source_id=str(source_id) if source_id is not None else None,
            measurements=_measurements(properties)
        ))

    if skipped:
        logger.warning(f"Skipped {skipped} feature(s) without a polygon geometry")

    if cells:
        bounds = {
            'xmin': min(c.x for c in cells),
            'ymin': min(c.y for c in cells),
            'xmax': max(c.x for c in cells),
            'ymax': max(c.y for c in cells)
        }
    else:
        bounds = {'xmin': 0, 'ymin': 0, 'xmax': 0, 'ymax': 0}

    classes = sorted({c.class_name for c in cells if c.class_name is not None})
    result = {
        'cells': cells,
        'classes': classes,
        'bounds': bounds,
        'source_hash': source_hash,
        'source_filename': path.name,
        'import_timestamp': datetime.now(timezone.utc).isoformat()
    }

    logger.debug(f"GeoJSON loaded: {len(cells)} cells, classes: {classes}")
    return result
