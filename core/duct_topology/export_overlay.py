"""Export an overlay image of ducts, holes, perimeters and cells (PNG)."""

from typing import List, Optional, Sequence, Tuple
import logging
from PIL import Image, ImageDraw, ImageFont
from shapely.geometry.base import BaseGeometry

from .cells import Cell
from .metrics import IS_IN_MONOLAYER
from .results import TopologyResult

logger = logging.getLogger(__name__)


def compute_bounds(
    result: TopologyResult,
    cells: Sequence[Cell],
    padding: float = 20.0
) -> Tuple[float, float, float, float]:
    """
    Compute bounding box of duct polygons and cell centroids with padding.

    Returns:
        Tuple of (xmin, ymin, xmax, ymax)
    """
    all_x = [c.x for c in cells]
    all_y = [c.y for c in cells]
    for duct in result.ducts:
        xmin, ymin, xmax, ymax = duct.polygon.bounds
        all_x.extend([xmin, xmax])
        all_y.extend([ymin, ymax])

    if not all_x:
        return (0, 0, 1000, 1000)

    return (min(all_x) - padding, min(all_y) - padding,
            max(all_x) + padding, max(all_y) + padding)


def world_to_image(
    x: float, y: float,
    xmin: float, ymin: float,
    units_per_px: float
) -> Tuple[int, int]:
    """Convert world coordinates to image pixel coordinates."""
    px = int((x - xmin) / units_per_px)
    py = int((y - ymin) / units_per_px)
    return (px, py)


def _exteriors(geom: BaseGeometry) -> List[List[Tuple[float, float]]]:
    if geom.geom_type == 'Polygon':
        return [list(geom.exterior.coords)]
    if geom.geom_type == 'MultiPolygon':
        return [list(p.exterior.coords) for p in geom.geoms]
    return []


def export_overlay_png(
    result: TopologyResult,
    cells: Sequence[Cell],
    output_path: str = "overlay.png",
    image_width: int = 2000,
    image_height: Optional[int] = None,
    background_color: Tuple[int, int, int] = (255, 255, 255),
    duct_fill_color: Tuple[int, int, int] = (240, 240, 255),
    duct_outline_color: Tuple[int, int, int] = (200, 200, 220),
    perimeter_color: Tuple[int, int, int] = (0, 100, 200),
    hole_color: Tuple[int, int, int] = (220, 0, 0),
    cell_color: Tuple[int, int, int] = (90, 90, 90),
    monolayer_color: Tuple[int, int, int] = (255, 140, 0),
    label_color: Tuple[int, int, int] = (0, 0, 0)
) -> None:
    """
    Export overlay image as PNG.

    Ducts are drawn as faint filled polygons, perimeters and holes as
    outlines, cells as dots (monolayer cells highlighted), and each duct is
    labelled with its id.

    Args:
        result: Output of DuctStructureComputer.compute
        cells: Cells to draw
        output_path: Output file path
        image_width: Target image width in pixels
        image_height: Target image height (auto if None)
    """
    logger.info("Exporting overlay PNG to: %s", output_path)

    xmin, ymin, xmax, ymax = compute_bounds(result, cells)
    width = xmax - xmin
    height = ymax - ymin
    units_per_px = width / image_width
    if image_height is None:
        image_height = max(1, int(height / units_per_px))
    logger.debug("Bounds: (%.1f, %.1f) to (%.1f, %.1f), image %d × %d pixels",
                 xmin, ymin, xmax, ymax, image_width, image_height)

    img = Image.new('RGB', (image_width, image_height), background_color)
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    def to_image(coords):
        return [world_to_image(x, y, xmin, ymin, units_per_px) for x, y in coords]

    for duct in result.ducts:
        for ring in _exteriors(duct.polygon):
            if len(ring) >= 3:
                draw.polygon(to_image(ring), fill=duct_fill_color, outline=duct_outline_color)

    for perimeter in result.perimeters:
        draw.line(to_image(list(perimeter.polygon.exterior.coords)), fill=perimeter_color, width=2)
    for hole in result.holes:
        draw.line(to_image(list(hole.polygon.exterior.coords)), fill=hole_color, width=2)

    radius = max(2, int(2.0 / units_per_px))
    for cell in cells:
        x, y = world_to_image(cell.x, cell.y, xmin, ymin, units_per_px)
        color = monolayer_color if cell.measurements.get(IS_IN_MONOLAYER) == 1.0 else cell_color
        draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=color)

    for duct in result.ducts:
        point = duct.polygon.representative_point()
        x, y = world_to_image(point.x, point.y, xmin, ymin, units_per_px)
        draw.text((x, y), f"D{duct.id}", fill=label_color, font=font)

    img.save(output_path, 'PNG')
    logger.info("Overlay PNG saved: %s (%d × %d pixels)", output_path, image_width, image_height)
