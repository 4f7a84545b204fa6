"""Result containers and the thread-safe store of the last published result."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import threading
import networkx as nx
from shapely.geometry.base import BaseGeometry

from .boundaries import Boundary

logger = logging.getLogger(__name__)


@dataclass
class DistanceField:
    """Per-cell distance to the nearest boundary and boundary incidence.

    Distances are -1 for cells the BFS never reached.
    """
    distances: Dict[int, int] = field(default_factory=dict)
    boundary_counts: Dict[int, int] = field(default_factory=dict)

    def distance(self, cell_id: int) -> int:
        return self.distances.get(cell_id, -1)

    def is_in_monolayer(self, cell_id: int) -> bool:
        return self.boundary_counts.get(cell_id, 0) >= 2


@dataclass
class Duct:
    """Connected cluster of cells with its boundaries and measurements."""
    id: int
    cell_ids: List[int]  # Sorted
    polygon: BaseGeometry
    measurements: Dict[str, float] = field(default_factory=dict)
    holes: List[Boundary] = field(default_factory=list)
    perimeters: List[Boundary] = field(default_factory=list)
    distance_field: Optional[DistanceField] = None

    @property
    def perimeter(self) -> Optional[Boundary]:
        return self.perimeters[0] if self.perimeters else None


@dataclass(frozen=True)
class ResultSnapshot:
    """Published (holes, perimeters, connectivity) triple, ordered by duct id."""
    holes: Tuple[Boundary, ...] = ()
    perimeters: Tuple[Boundary, ...] = ()
    connectivity: Optional[nx.Graph] = None


@dataclass
class TopologyResult:
    """Everything one compute call produced."""
    ducts: List[Duct]
    holes: List[Boundary]
    perimeters: List[Boundary]
    connectivity: nx.Graph

    def duct(self, duct_id: int) -> Duct:
        return self.ducts[duct_id]

    def distance_fields(self) -> Dict[int, DistanceField]:
        return {d.id: d.distance_field for d in self.ducts if d.distance_field is not None}


class ResultStore:
    """
    Last-known-good holes, perimeters and connectivity.

    A computation stages per-duct results with ``append`` and makes them
    visible in one step with ``publish``. Readers only ever see published
    snapshots, never a partially staged one.

    One computation stages at a time: ``begin`` raises while another
    computation has begun and not yet published or discarded.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._staging: Dict[int, Tuple[List[Boundary], List[Boundary]]] = {}
        self._snapshot = ResultSnapshot()
        self._active = False

    def begin(self) -> None:
        """Clear staging for a new computation.

        Raises:
            RuntimeError: if another computation is still staging
        """
        with self._lock:
            if self._active:
                raise RuntimeError("Another computation is already staging results in this store")
            self._active = True
            self._staging = {}

    def append(self, duct_id: int, holes: List[Boundary], perimeters: List[Boundary]) -> None:
        with self._lock:
            if duct_id in self._staging:
                raise ValueError(f"Results for duct {duct_id} already staged")
            self._staging[duct_id] = (list(holes), list(perimeters))

    def publish(self, connectivity: Optional[nx.Graph]) -> ResultSnapshot:
        """Replace the snapshot with the staged results in duct id order."""
        with self._lock:
            holes = []
            perimeters = []
            for duct_id in sorted(self._staging):
                duct_holes, duct_perimeters = self._staging[duct_id]
                holes.extend(duct_holes)
                perimeters.extend(duct_perimeters)
            self._snapshot = ResultSnapshot(tuple(holes), tuple(perimeters), connectivity)
            self._staging = {}
            self._active = False
            snapshot = self._snapshot
        logger.debug("publish: %d holes, %d perimeters", len(snapshot.holes), len(snapshot.perimeters))
        return snapshot

    def discard(self) -> None:
        """Drop staged results after a failed computation."""
        with self._lock:
            dropped = len(self._staging)
            self._staging = {}
            self._active = False
        logger.debug("discard: dropped staged results of %d duct(s)", dropped)

    def snapshot(self) -> ResultSnapshot:
        with self._lock:
            return self._snapshot

    def holes(self) -> Tuple[Boundary, ...]:
        return self.snapshot().holes

    def perimeters(self) -> Tuple[Boundary, ...]:
        return self.snapshot().perimeters

    def connectivity(self) -> Optional[nx.Graph]:
        return self.snapshot().connectivity
