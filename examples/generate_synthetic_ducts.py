from __future__ import annotations

import json
import math
from pathlib import Path

import networkx as nx
from shapely.geometry import box, mapping

SPACING = 10.0
ROW_HEIGHT = SPACING * math.sqrt(3) / 2


def hex_lattice(rows: int, cols: int, spacing: float = SPACING,
                origin: tuple = (0.0, 0.0), skip=()) -> dict:
    """
    Centroids of a hexagonal lattice, keyed by (row, col) in row-major order.

    Odd rows are shifted right by half a spacing, so every cell sits at
    exactly ``spacing`` from its (up to) six neighbours.

    - skip: (row, col) positions left empty, e.g. to punch a hole
    """
    ox, oy = origin
    row_height = spacing * math.sqrt(3) / 2
    points = {}
    for r in range(rows):
        for c in range(cols):
            if (r, c) in skip:
                continue
            x = ox + c * spacing + (spacing / 2 if r % 2 else 0.0)
            y = oy + r * row_height
            points[(r, c)] = (x, y)
    return points


def distance_graph(points, max_distance: float) -> nx.Graph:
    """Graph over point indices joining pairs at most ``max_distance`` apart."""
    graph = nx.Graph()
    graph.add_nodes_from(range(len(points)))
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            (xi, yi), (xj, yj) = points[i], points[j]
            if math.hypot(xj - xi, yj - yi) <= max_distance + 1e-9:
                graph.add_edge(i, j)
    return graph


def lattice_fixture(rows: int, cols: int, skip=(), max_distance: float = 12.0):
    """
    (keys, positions, graph) for a lattice: keys[i] is the (row, col) of cell
    id i, positions maps cell id -> centroid, graph joins lattice neighbours.
    """
    lattice = hex_lattice(rows, cols, skip=skip)
    keys = list(lattice)
    points = list(lattice.values())
    return keys, dict(enumerate(points)), distance_graph(points, max_distance)


def cell_feature(x: float, y: float, class_name: str | None,
                 nucleus_half: float = 2.0, cell_half: float = 4.0, feature_id: str | None = None) -> dict:
    """QuPath-style detection feature with a square cell outline and nucleus."""
    feature = {
        "type": "Feature",
        "geometry": mapping(box(x - cell_half, y - cell_half, x + cell_half, y + cell_half)),
        "nucleusGeometry": mapping(box(x - nucleus_half, y - nucleus_half, x + nucleus_half, y + nucleus_half)),
        "properties": {
            "objectType": "cell",
            "measurements": [{"name": "Nucleus: Area", "value": (2 * nucleus_half) ** 2}],
        },
    }
    if class_name is not None:
        feature["properties"]["classification"] = {"name": class_name, "color": [255, 0, 0]}
    if feature_id is not None:
        feature["id"] = feature_id
    return feature


def synthetic_features() -> list:
    """
    Two ducts and some excluded cells:

    - a 7x7 lattice with its centre cell removed (one hole, thick wall)
    - a 3x3 ring around a removed centre, far to the right (monolayer)
    - a row of "No Duct" cells between them
    """
    features = []
    thick = hex_lattice(7, 7, skip={(3, 3)})
    ring = hex_lattice(3, 3, origin=(200.0, 0.0), skip={(1, 1)})
    for i, (x, y) in enumerate(thick.values()):
        features.append(cell_feature(x, y, "Duct - Mouse", feature_id=f"thick-{i}"))
    for i, (x, y) in enumerate(ring.values()):
        features.append(cell_feature(x, y, "Duct - Human", feature_id=f"ring-{i}"))
    for i in range(4):
        features.append(cell_feature(100.0 + i * 20.0, 100.0, "No Duct", feature_id=f"stroma-{i}"))
    return features


def write_geojson(path: Path, features: list) -> None:
    with open(path, "w") as f:
        json.dump({"type": "FeatureCollection", "features": features}, f, indent=1)


def main() -> None:
    out = Path(__file__).parent / "synthetic_ducts.geojson"
    write_geojson(out, synthetic_features())
    param = out.parent / f"{out.stem}_param.txt"
    param.write_text(
        "# Nucleus gaps between lattice neighbours are below 7\n"
        "holes_min_distances = [8.0]\n"
        "duct_max_distance = 8.0\n"
        "duct_min_cell_size = 5\n"
    )
    print(f"Wrote: {out}")
    print(f"Wrote: {param}")


if __name__ == "__main__":
    main()
