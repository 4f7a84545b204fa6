#!/usr/bin/env python3
"""Test boundary refinement around obtuse triangular holes."""

import math

import networkx as nx
import pytest

from duct_topology.boundaries import Loop, OrientedEdge, make_boundary, trace_boundaries
from duct_topology.errors import InvariantViolation
from duct_topology.refine import collect_refinements, refine_boundary

MIN_ANGLE = math.radians(120.0)

# Square with a flat triangle hanging off its bottom side: cell 4 sits just
# above the bottom edge, so triangle (0, 4, 1) is obtuse at 4.
POSITIONS = {0: (0.0, 0.0), 1: (20.0, 0.0), 2: (20.0, 20.0), 3: (0.0, 20.0), 4: (10.0, 3.0)}
EDGES = [(0, 1), (1, 2), (2, 3), (3, 0), (4, 0), (4, 1)]


def cyclic_successor(cells, cell):
    return cells[(cells.index(cell) + 1) % len(cells)]


def traced_square():
    graph = nx.Graph()
    graph.add_edges_from(EDGES)
    return trace_boundaries(list(POSITIONS), graph, POSITIONS)


def test_obtuse_triangle_maps_opposite_edge():
    result = traced_square()
    assert len(result.triangles) == 1
    assert result.triangles[0].is_hole

    refinements = collect_refinements(result.triangles, POSITIONS, MIN_ANGLE)
    print(f"Refinements: {refinements}")
    assert refinements == {OrientedEdge(0, 1): 4}


def test_perimeter_is_pushed_around_obtuse_vertex():
    result = traced_square()
    refinements = collect_refinements(result.triangles, POSITIONS, MIN_ANGLE)
    perimeter = next(b for b in result.boundaries if not b.is_hole)
    assert sorted(perimeter.cells) == [0, 1, 2, 3]

    refined, passes = refine_boundary(perimeter, refinements, POSITIONS)

    print(f"Refined perimeter: {refined.cells} in {passes} passes")
    assert passes == 2
    assert sorted(refined.cells) == [0, 1, 2, 3, 4]
    assert cyclic_successor(refined.cells, 0) == 4
    assert cyclic_successor(refined.cells, 4) == 1
    assert not refined.is_hole
    assert refined.cells[0] == perimeter.cells[0]


def test_refining_refined_boundary_is_noop():
    result = traced_square()
    refinements = collect_refinements(result.triangles, POSITIONS, MIN_ANGLE)
    perimeter = next(b for b in result.boundaries if not b.is_hole)

    refined, _ = refine_boundary(perimeter, refinements, POSITIONS)
    again, passes = refine_boundary(refined, refinements, POSITIONS)

    assert passes == 1
    assert again is refined
    assert again.cells == refined.cells


def test_hole_without_matching_edge_is_unchanged():
    result = traced_square()
    refinements = collect_refinements(result.triangles, POSITIONS, MIN_ANGLE)
    hole = next(b for b in result.boundaries if b.is_hole)

    refined, passes = refine_boundary(hole, refinements, POSITIONS)
    assert refined is hole
    assert passes == 1


def test_acute_and_counter_clockwise_triangles_are_skipped():
    positions = {0: (0.0, 0.0), 1: (10.0, 0.0), 2: (5.0, 8.66), 3: (10.0, 2.0)}
    equilateral = Loop([0, 2, 1], is_hole=True)
    obtuse_perimeter = Loop([0, 1, 3], is_hole=False)

    assert collect_refinements([equilateral], positions, MIN_ANGLE) == {}
    assert collect_refinements([obtuse_perimeter], positions, 0.0) == {}


def test_angle_threshold_is_inclusive():
    # Right angle at cell 0
    positions = {0: (0.0, 0.0), 1: (0.0, 10.0), 2: (10.0, 0.0)}
    triangle = Loop([0, 1, 2], is_hole=True)

    assert collect_refinements([triangle], positions, math.radians(90.0) - 1e-9) == {OrientedEdge(2, 1): 0}
    assert collect_refinements([triangle], positions, math.radians(91.0)) == {}


def test_non_converging_refinement_raises():
    positions = {0: (0.0, 0.0), 1: (10.0, 0.0), 2: (10.0, 10.0), 3: (0.0, 10.0), 9: (5.0, -2.0)}
    boundary = make_boundary([0, 1, 2, 3], positions)
    refinements = {OrientedEdge(0, 1): 9, OrientedEdge(0, 9): 1}

    with pytest.raises(InvariantViolation):
        refine_boundary(boundary, refinements, positions)
