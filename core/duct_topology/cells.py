"""Cell records and id-indexed lookups."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from shapely.geometry import Polygon

from .errors import ConfigurationError


@dataclass(eq=False)
class Cell:
    """One segmented cell.

    Cells compare and hash by identity. ``id`` is the arena index used as key
    in every graph and lookup table; ``measurements`` is owned by the caller and
    only receives named entries.
    """
    id: int
    x: float
    y: float
    class_name: Optional[str] = None
    roi: Optional[Polygon] = None  # Cell outline
    nucleus: Optional[Polygon] = None  # Nucleus outline
    source_id: Optional[str] = None
    measurements: Dict[str, float] = field(default_factory=dict)

    @property
    def xy(self) -> Tuple[float, float]:
        return (self.x, self.y)


def cells_by_id(cells: Sequence[Cell]) -> Dict[int, Cell]:
    """Index cells by id, rejecting duplicate ids."""
    lookup = {}
    for cell in cells:
        if cell.id in lookup:
            raise ConfigurationError(f"Duplicate cell id: {cell.id}")
        lookup[cell.id] = cell
    return lookup


def cell_positions(cells: Sequence[Cell]) -> Dict[int, Tuple[float, float]]:
    """Centroid of every cell keyed by cell id."""
    return {cell.id: (cell.x, cell.y) for cell in cells}


def make_cells(
    points: Sequence[Sequence[float]],
    class_names: Optional[Sequence[Optional[str]]] = None
) -> List[Cell]:
    """
    Build cells from bare centroids.

    Args:
        points: Sequence of (x, y) centroids; cell ids follow their order
        class_names: Optional class name per point

    Returns:
        List of cells with ids 0..n-1
    """
    cells = []
    for i, (x, y) in enumerate(points):
        class_name = class_names[i] if class_names is not None else None
        cells.append(Cell(id=i, x=float(x), y=float(y), class_name=class_name))
    return cells
