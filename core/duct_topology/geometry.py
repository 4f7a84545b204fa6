"""Polygon primitives used by the boundary tracer and the duct measurements."""

import math
from typing import Dict, Iterable, Optional, Sequence, Tuple
import numpy as np
from shapely.affinity import scale
from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from .cells import Cell
from .errors import GeometryError

Point2 = Tuple[float, float]


def is_right_of(a: Point2, b: Point2, c: Point2) -> bool:
    """True if c lies strictly right of the directed line a -> b."""
    return ((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])) < 0


def signed_area(points: Sequence[Point2]) -> float:
    """
    Shoelace area of a closed loop of points.

    Positive for counter-clockwise loops, negative for clockwise ones (in a
    y-up frame). The loop is implicitly closed: the last point connects back
    to the first.
    """
    area = 0.0
    n = len(points)
    for i in range(n):
        x_i, y_i = points[i]
        x_j, y_j = points[(i + 1) % n]
        area += x_i * y_j - x_j * y_i
    return area / 2.0


def triangle_angles(p1: Point2, p2: Point2, p3: Point2) -> Tuple[float, float, float]:
    """
    Interior angles (radians) of a triangle at p1, p2 and p3.

    The first two angles come from atan2 differences folded into [0, pi];
    the third closes the sum to pi.
    """
    a0 = abs(math.atan2(p3[1] - p1[1], p3[0] - p1[0])
             - math.atan2(p2[1] - p1[1], p2[0] - p1[0]))
    a1 = abs(math.atan2(p1[1] - p2[1], p1[0] - p2[0])
             - math.atan2(p3[1] - p2[1], p3[0] - p2[0]))
    if a0 > math.pi:
        a0 = 2 * math.pi - a0
    if a1 > math.pi:
        a1 = 2 * math.pi - a1
    a2 = math.pi - a0 - a1
    return (a0, a1, a2)


def loop_polygon(points: Sequence[Point2]) -> Polygon:
    """Build a polygon from an ordered loop of centroids."""
    try:
        return Polygon(points)
    except (GEOSException, ValueError) as e:
        raise GeometryError(f"Cannot build polygon from {len(points)} points: {e}") from e


def solidity(geom: BaseGeometry) -> float:
    """Area over convex hull area; 0 for degenerate geometry."""
    try:
        hull_area = geom.convex_hull.area
    except GEOSException as e:
        raise GeometryError(f"Convex hull failed: {e}") from e
    if hull_area <= 0:
        return 0.0
    return float(geom.area / hull_area)


def polygon_covers(outer: BaseGeometry, inner: BaseGeometry) -> bool:
    """shapely ``covers`` with GEOS failures surfaced as GeometryError."""
    try:
        return bool(outer.covers(inner))
    except GEOSException as e:
        raise GeometryError(f"Polygon cover test failed: {e}") from e


def cell_footprint(cell: Cell, default_radius: float) -> BaseGeometry:
    """
    Outline used for the duct union: cell outline, else nucleus, else a disc.

    Args:
        cell: Cell to outline
        default_radius: Radius of the disc drawn around cells without outlines

    Returns:
        Shapely geometry of the cell footprint
    """
    if cell.roi is not None and not cell.roi.is_empty:
        return cell.roi
    if cell.nucleus is not None and not cell.nucleus.is_empty:
        return cell.nucleus
    return Point(cell.x, cell.y).buffer(default_radius)


def proximity_outline(cell: Cell) -> Optional[BaseGeometry]:
    """Outline used for boundary distances: nucleus, else cell outline, else None."""
    if cell.nucleus is not None and not cell.nucleus.is_empty:
        return cell.nucleus
    if cell.roi is not None and not cell.roi.is_empty:
        return cell.roi
    return None


def union_of_hulls(footprints: Iterable[BaseGeometry]) -> BaseGeometry:
    """
    Union the convex hulls of footprints into one geometry, healed with buffer(0).

    Raises:
        GeometryError: if the union fails or comes out empty
    """
    try:
        # Hulls avoid union failures on outlines with self-touching shells
        hulls = [geom.convex_hull for geom in footprints]
        merged = unary_union(hulls).buffer(0)
    except (GEOSException, ValueError) as e:
        raise GeometryError(f"Hull union failed: {e}") from e
    if merged.is_empty:
        raise GeometryError("Hull union is empty")
    return merged


def calibrate(geom: BaseGeometry, pixel_width: float, pixel_height: float) -> BaseGeometry:
    """Scale pixel geometry to microns about the origin."""
    return scale(geom, xfact=pixel_width, yfact=pixel_height, origin=(0, 0))


def _caliper_diameters(hull: BaseGeometry) -> Tuple[float, float]:
    """Largest point distance and smallest caliper width of a convex hull."""
    if hull.is_empty:
        return 0.0, 0.0
    if hull.geom_type == 'Polygon':
        pts = np.asarray(hull.exterior.coords)[:-1]
    else:
        pts = np.asarray(hull.coords)
    if len(pts) < 2:
        return 0.0, 0.0

    diffs = pts[:, None, :] - pts[None, :, :]
    max_diameter = float(np.sqrt((diffs ** 2).sum(axis=2).max()))
    if hull.geom_type != 'Polygon':
        return max_diameter, 0.0

    # Width across each hull edge: farthest hull point from the edge line
    edges = np.roll(pts, -1, axis=0) - pts
    lengths = np.hypot(edges[:, 0], edges[:, 1])
    rel = pts[None, :, :] - pts[:, None, :]
    cross = np.abs(edges[:, 0, None] * rel[:, :, 1] - edges[:, 1, None] * rel[:, :, 0])
    keep = lengths > 0
    widths = cross[keep].max(axis=1) / lengths[keep]
    return max_diameter, float(widths.min())


def shape_measurements(geom: BaseGeometry, pixel_width: float, pixel_height: float) -> Dict[str, float]:
    """
    Calibrated shape descriptors of a polygon.

    Args:
        geom: Polygon or MultiPolygon in pixel units
        pixel_width: Microns per pixel along x
        pixel_height: Microns per pixel along y

    Returns:
        Dict with "Area um^2", "Perimeter um", "Circularity" (4*pi*A/P^2,
        NaN for a zero perimeter), "Solidity", "Max diameter um" and
        "Min diameter um" (smallest caliper width)
    """
    scaled = calibrate(geom, pixel_width, pixel_height)
    area = float(scaled.area)
    perimeter = float(scaled.length)
    try:
        max_diameter, min_diameter = _caliper_diameters(scaled.convex_hull)
    except GEOSException as e:
        raise GeometryError(f"Convex hull failed: {e}") from e
    return {
        "Area um^2": area,
        "Perimeter um": perimeter,
        "Circularity": 4 * math.pi * area / perimeter ** 2 if perimeter > 0 else math.nan,
        "Solidity": solidity(scaled),
        "Max diameter um": max_diameter,
        "Min diameter um": min_diameter,
    }
