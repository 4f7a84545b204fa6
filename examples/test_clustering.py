#!/usr/bin/env python3
"""Test cell filtering and duct clustering."""

import networkx as nx
import pytest
from shapely.geometry import Point

from duct_topology.cells import make_cells
from duct_topology.clustering import PARENT_ID, build_duct_polygon, cluster_ducts, filter_cells
from duct_topology.errors import GeometryError
from duct_topology.geometry import union_of_hulls


def two_groups():
    """Cells 0-3 in a chain, cells 4-5 paired, cell 6 alone."""
    points = [(0, 0), (10, 0), (20, 0), (30, 0), (100, 0), (110, 0), (200, 200)]
    cells = make_cells(points)
    graph = nx.Graph()
    graph.add_nodes_from(range(len(points)))
    graph.add_edges_from([(0, 1), (1, 2), (2, 3), (4, 5)])
    return cells, graph


def test_filter_cells_keeps_unclassified():
    cells = make_cells([(0, 0), (1, 0), (2, 0)], ["No Duct", None, "Duct - Mouse"])
    kept = filter_cells(cells, ["No Duct"])
    assert [c.id for c in kept] == [1, 2]


def test_components_partition_cells():
    cells, graph = two_groups()
    ducts = cluster_ducts(cells, graph, min_cell_size=1)

    print(f"Ducts: {[d.cell_ids for d in ducts]}")
    assert [d.cell_ids for d in ducts] == [[0, 1, 2, 3], [4, 5], [6]]
    assert [d.id for d in ducts] == [0, 1, 2]
    all_ids = [i for d in ducts for i in d.cell_ids]
    assert sorted(all_ids) == list(range(7))


def test_small_components_are_discarded():
    cells, graph = two_groups()
    ducts = cluster_ducts(cells, graph, min_cell_size=3)

    assert [d.cell_ids for d in ducts] == [[0, 1, 2, 3]]
    assert cells[0].measurements[PARENT_ID] == 0
    assert PARENT_ID not in cells[4].measurements
    assert PARENT_ID not in cells[6].measurements


def test_ducts_ordered_by_smallest_cell_id():
    cells = make_cells([(0, 0), (10, 0), (50, 0), (60, 0)])
    graph = nx.Graph()
    graph.add_edges_from([(1, 2), (0, 3)])

    ducts = cluster_ducts(cells, graph, min_cell_size=2)

    assert [d.cell_ids for d in ducts] == [[0, 3], [1, 2]]
    assert ducts[1].measurements["id"] == 1
    assert cells[2].measurements[PARENT_ID] == 1


def test_duct_polygon_covers_member_centroids():
    cells, graph = two_groups()
    ducts = cluster_ducts(cells, graph, min_cell_size=2, default_cell_radius=6.0)

    for duct in ducts:
        for cell_id in duct.cell_ids:
            x, y = cells[cell_id].xy
            assert duct.polygon.buffer(1e-6).contains(Point(x, y))
    # Discs of radius 6 spaced 10 apart overlap into a single polygon
    assert ducts[0].polygon.geom_type == "Polygon"


def test_cells_missing_from_graph_are_singletons():
    cells = make_cells([(0, 0), (10, 0), (20, 0)])
    graph = nx.Graph()
    graph.add_edge(0, 1)

    ducts = cluster_ducts(cells, graph, min_cell_size=1)
    assert [d.cell_ids for d in ducts] == [[0, 1], [2]]


def test_graph_nodes_outside_the_cell_set_are_ignored():
    cells = make_cells([(0, 0), (10, 0)])
    graph = nx.Graph()
    graph.add_edges_from([(0, 9), (9, 1)])  # 9 is an excluded cell

    ducts = cluster_ducts(cells, graph, min_cell_size=1)
    assert [d.cell_ids for d in ducts] == [[0], [1]]


def test_empty_hull_union_raises():
    with pytest.raises(GeometryError):
        union_of_hulls([])
    with pytest.raises(GeometryError):
        build_duct_polygon([], default_cell_radius=5.0)
