#!/usr/bin/env python3
"""Test multi-threshold boundary reconciliation."""

import math

import networkx as nx
import pytest

from duct_topology.errors import ConfigurationError
from duct_topology.proximity import ProximityGraphs
from duct_topology.reconcile import find_boundaries, threshold_passes
from generate_synthetic_ducts import lattice_fixture

MIN_ANGLE = math.radians(120.0)


def test_synthetic_duct_pass_added_only_when_needed():
    graphs = ProximityGraphs({10.0: nx.Graph(), 20.0: nx.Graph(), 50.0: nx.Graph()})

    passes = threshold_passes(graphs, [20.0, 10.0], 50.0)
    assert [t for t, _ in passes] == [10.0, 20.0, 50.0]

    passes = threshold_passes(graphs, [10.0, 50.0], 50.0)
    assert [t for t, _ in passes] == [10.0, 50.0]

    with pytest.raises(ConfigurationError):
        threshold_passes(graphs, [10.0, 30.0], 50.0)


def test_hole_found_at_two_thresholds_is_reported_once():
    keys, positions, graph = lattice_fixture(7, 7, skip={(3, 3)})
    passes = [(12.0, graph), (15.0, graph)]

    result = find_boundaries(list(positions), passes, positions, holes_min_cell_size=5,
                             refine=True, min_angle_rad=MIN_ANGLE)

    print(f"Holes: {len(result.holes)}, perimeters: {len(result.perimeters)}")
    assert len(result.holes) == 1
    assert result.holes[0].threshold == 12.0
    assert len(result.perimeters) == 1
    assert result.perimeters[0].threshold == 15.0


def test_perimeters_only_kept_at_last_pass():
    _, positions, graph = lattice_fixture(5, 5, skip={(2, 2)})
    passes = [(12.0, graph), (13.0, graph), (14.0, graph)]

    result = find_boundaries(list(positions), passes, positions, holes_min_cell_size=4)

    assert [b.threshold for b in result.perimeters] == [14.0]
    assert [b.threshold for b in result.holes] == [12.0]


def test_small_loops_are_dropped_and_zero_cells_recorded():
    keys, positions, graph = lattice_fixture(7, 7, skip={(3, 3)})
    passes = [(12.0, graph)]

    result = find_boundaries(list(positions), passes, positions, holes_min_cell_size=7)

    assert result.holes == []
    assert len(result.perimeters) == 1
    outer = {i for i, (r, c) in enumerate(keys) if r in (0, 6) or c in (0, 6)}
    assert result.zero_distance_cells == outer


def test_zero_cells_include_all_surviving_loops():
    keys, positions, graph = lattice_fixture(7, 7, skip={(3, 3)})
    result = find_boundaries(list(positions), [(12.0, graph)], positions, holes_min_cell_size=5)

    loop_cells = set()
    for boundary in result.boundaries:
        loop_cells.update(boundary.cells)
    assert result.zero_distance_cells == loop_cells
    assert len(loop_cells) == 24 + 6
