"""Pydantic models for the computation parameters and the canonical IR schema."""

import math
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from typing import Literal, Optional, List, Dict, Any

from .errors import ConfigurationError


class DuctParameters(BaseModel):
    """Parameters of a duct structure computation.

    Distances are in the same units as the cell coordinates.
    """
    excluded_classes: List[str] = Field(default_factory=lambda: ["No Duct"])
    duct_max_distance: float = 50.0
    duct_min_cell_size: int = 10
    measure: bool = True
    duct_classes: List[str] = Field(default_factory=lambda: ["Duct - Mouse", "Duct - Human"])
    holes_min_distances: List[float] = Field(default_factory=lambda: [10.0, 20.0, 30.0, 50.0])
    holes_min_cell_size: int = 5
    refine_boundaries: bool = True
    triangle_to_refine_min_angle: float = 120.0  # Degrees
    pixel_width_microns: float = 1.0
    pixel_height_microns: float = 1.0
    default_cell_radius: float = 5.0  # Footprint radius of cells without outlines
    max_workers: Optional[int] = None

    @field_validator('excluded_classes', 'duct_classes')
    @classmethod
    def _class_names_not_blank(cls, names: List[str]) -> List[str]:
        for name in names:
            if not name or not name.strip():
                raise ValueError("class names cannot be blank")
        return names

    @field_validator('holes_min_distances')
    @classmethod
    def _sort_distances(cls, distances: List[float]) -> List[float]:
        if not distances:
            raise ValueError("at least one hole distance is required")
        if any(d <= 0 for d in distances):
            raise ValueError("hole distances must be positive")
        return sorted(distances)

    @field_validator('duct_max_distance', 'pixel_width_microns', 'pixel_height_microns',
                     'default_cell_radius')
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator('duct_min_cell_size', 'holes_min_cell_size')
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @model_validator(mode='after')
    def _check_consistency(self) -> 'DuctParameters':
        if self.duct_max_distance < max(self.holes_min_distances):
            raise ValueError(
                f"duct_max_distance ({self.duct_max_distance}) cannot be lower than "
                f"holes min distances (max {max(self.holes_min_distances)})"
            )
        both = set(self.excluded_classes) & set(self.duct_classes)
        if both:
            raise ValueError(f"classes both excluded and counted as duct classes: {sorted(both)}")
        return self

    @property
    def triangle_to_refine_min_angle_rad(self) -> float:
        return math.radians(self.triangle_to_refine_min_angle)


def build_parameters(**values: Any) -> DuctParameters:
    """Validate parameters, reporting failures as ConfigurationError."""
    try:
        return DuctParameters(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid duct parameters: {e}") from e


class Provenance(BaseModel):
    """Provenance metadata for the IR."""
    source_filename: str
    source_sha256: str
    import_timestamp: str
    parameters: Dict[str, Any]


class CellRecord(BaseModel):
    """Cell with its topology measurements."""
    id: int
    source_id: Optional[str] = None
    xy: List[float]
    class_name: Optional[str] = None
    parent_id: Optional[int] = None  # Duct id, None if the cell is in no duct
    distance_to_boundaries: Optional[int] = None
    is_in_monolayer: Optional[bool] = None


class BoundaryRecord(BaseModel):
    """Hole or perimeter loop."""
    id: str
    parent_id: int
    kind: Literal["hole", "perimeter"]
    threshold: Optional[float] = None
    cell_ids: List[int]
    polygon: Dict[str, Any]  # GeoJSON-like
    measurements: Dict[str, Optional[float]]  # None where undefined (NaN)


class DuctRecord(BaseModel):
    """Duct structure."""
    id: int
    cell_ids: List[int]
    polygon: Dict[str, Any]  # GeoJSON-like
    measurements: Dict[str, Optional[float]]  # None where undefined (NaN)


class TopologyIR(BaseModel):
    """Canonical IR for a duct topology computation."""
    version: str
    provenance: Provenance
    cells: List[CellRecord]
    ducts: List[DuctRecord]
    holes: List[BoundaryRecord]
    perimeters: List[BoundaryRecord]
    connections: List[List[int]]  # Duct-level proximity edges as [u, v]
