#!/usr/bin/env python3
"""Test rightmost-turn boundary tracing on small synthetic graphs."""

import networkx as nx
import pytest

from duct_topology.boundaries import OrientedEdge, directed_edges, make_boundary, trace_boundaries
from duct_topology.errors import InvariantViolation
from duct_topology.geometry import signed_area
from generate_synthetic_ducts import lattice_fixture


def loop_area(boundary, positions):
    return signed_area([positions[c] for c in boundary.cells])


def test_oriented_edge_is_directional():
    positions = {0: (0.0, 0.0), 1: (10.0, 0.0), 2: (5.0, -5.0), 3: (5.0, 5.0)}
    edge = OrientedEdge(0, 1)

    assert edge != OrientedEdge(1, 0)
    assert edge == OrientedEdge(0, 1)
    assert edge.opposite() == OrientedEdge(1, 0)
    assert len({edge, edge.opposite(), OrientedEdge(0, 1)}) == 2

    # Heading east, south is on the right
    assert edge.is_right(2, positions)
    assert not edge.is_right(3, positions)
    assert edge.opposite().is_right(3, positions)


def test_directed_edges_first_seen_order():
    graph = nx.path_graph(3)
    edges = directed_edges([2, 0, 1], graph)
    assert edges == [OrientedEdge(0, 1), OrientedEdge(1, 0), OrientedEdge(1, 2), OrientedEdge(2, 1)]


def test_square_loop_orientation():
    """A 4-cycle has one counter-clockwise perimeter and one clockwise hole."""
    positions = {0: (0.0, 0.0), 1: (10.0, 0.0), 2: (10.0, 10.0), 3: (0.0, 10.0)}
    graph = nx.cycle_graph(4)

    result = trace_boundaries([0, 1, 2, 3], graph, positions, threshold=12.0)

    print(f"Traced {len(result.boundaries)} boundaries")
    assert len(result.boundaries) == 2
    assert result.triangles == []
    holes = [b for b in result.boundaries if b.is_hole]
    perimeters = [b for b in result.boundaries if not b.is_hole]
    assert len(holes) == 1 and len(perimeters) == 1
    assert loop_area(holes[0], positions) < 0
    assert loop_area(perimeters[0], positions) > 0
    for boundary in result.boundaries:
        assert sorted(boundary.cells) == [0, 1, 2, 3]
        assert boundary.threshold == 12.0
        assert boundary.polygon.area == pytest.approx(100.0)


def test_lattice_with_missing_cell_has_one_hole():
    keys, positions, graph = lattice_fixture(7, 7, skip={(3, 3)})
    ids = list(positions)

    result = trace_boundaries(ids, graph, positions, threshold=12.0)

    holes = [b for b in result.boundaries if b.is_hole]
    perimeters = [b for b in result.boundaries if not b.is_hole]
    print(f"Holes: {[len(h.cells) for h in holes]}, perimeters: {[len(p.cells) for p in perimeters]}")
    assert len(holes) == 1
    assert len(perimeters) == 1

    ring = {(3, 2), (3, 4), (2, 3), (2, 4), (4, 3), (4, 4)}
    assert {keys[c] for c in holes[0].cells} == ring
    assert len(holes[0].cells) == 6

    outer = {k for k in keys if k[0] in (0, 6) or k[1] in (0, 6)}
    assert {keys[c] for c in perimeters[0].cells} == outer
    assert len(perimeters[0].cells) == 24

    # Lattice triangles are inner faces, all clockwise
    assert result.triangles
    assert all(t.is_hole for t in result.triangles)


def test_every_directed_edge_belongs_to_one_loop():
    _, positions, graph = lattice_fixture(5, 6, skip={(2, 2), (2, 3)})
    result = trace_boundaries(list(positions), graph, positions)

    traversed = sum(len(b.cells) for b in result.boundaries) + 3 * len(result.triangles)
    assert traversed == 2 * graph.number_of_edges()
    for boundary in result.boundaries:
        assert len(boundary.cells) >= 4
        assert len(set(boundary.cells)) == len(boundary.cells)


def test_cells_outside_the_duct_are_ignored():
    """Tracing a 3x3 block of a larger lattice sees only the block's edges."""
    keys, positions, graph = lattice_fixture(7, 7)
    block = [i for i, (r, c) in enumerate(keys) if r < 3 and c < 3 and (r, c) != (1, 1)]

    result = trace_boundaries(block, graph, positions)

    holes = [b for b in result.boundaries if b.is_hole]
    perimeters = [b for b in result.boundaries if not b.is_hole]
    assert len(holes) == 1 and len(holes[0].cells) == 6
    assert len(perimeters) == 1 and sorted(perimeters[0].cells) == sorted(block)
    for boundary in result.boundaries:
        assert set(boundary.cells) <= set(block)


def test_tracing_is_deterministic():
    _, positions, graph = lattice_fixture(6, 6, skip={(2, 2)})
    first = trace_boundaries(list(positions), graph, positions)
    second = trace_boundaries(list(positions), graph, positions)
    assert [b.cells for b in first.boundaries] == [b.cells for b in second.boundaries]
    assert [t.cells for t in first.triangles] == [t.cells for t in second.triangles]


def test_walk_that_cannot_close_raises():
    """Two neighbours on the same ray make two edges share a successor."""
    positions = {0: (0.0, 0.0), 1: (1.0, 0.0), 2: (2.0, 0.0), 3: (0.0, 1.0)}
    graph = nx.Graph()
    graph.add_edges_from([(0, 1), (0, 2), (0, 3)])

    with pytest.raises(InvariantViolation):
        trace_boundaries([0, 1, 2, 3], graph, positions)


def test_make_boundary_orientation():
    positions = {0: (0.0, 0.0), 1: (10.0, 0.0), 2: (10.0, 10.0), 3: (0.0, 10.0)}
    assert not make_boundary([0, 1, 2, 3], positions).is_hole
    assert make_boundary([3, 2, 1, 0], positions).is_hole
    assert make_boundary([0, 1, 2, 3], positions, is_hole=True).is_hole
