"""SQLite persistence for baked cave layouts.

``write_layout`` stores a layout and its navigation graph in a fresh
database file. :class:`Database` reads it back through a read-only
connection with typed row accessors, and :meth:`Database.load_graph`
rebuilds the :class:`~cavenav.graph.NavigationGraph` with the stored
node ids.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .api import CaveLayout
from .graph import NavigationGraph
from .mesher import MeshData, Outline
from .path import Vec3

LOGGER = logging.getLogger(__name__)

SqlConnection = sqlite3.Connection

SCHEMA_VERSION = 1

MESH_FLOOR = "floor"
MESH_WALLS = "walls"

CREATE_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta(
  key TEXT PRIMARY KEY,
  value TEXT
);

CREATE TABLE IF NOT EXISTS nodes(
  id INTEGER PRIMARY KEY,
  x REAL NOT NULL, y REAL NOT NULL, z REAL NOT NULL,
  radius REAL
);

CREATE TABLE IF NOT EXISTS edges(
  handle INTEGER PRIMARY KEY,
  node_a INTEGER NOT NULL REFERENCES nodes(id),
  node_b INTEGER NOT NULL REFERENCES nodes(id),
  weight REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS mesh_vertices(
  mesh TEXT NOT NULL,             -- 'floor' or 'walls'
  idx INTEGER NOT NULL,
  x REAL NOT NULL, y REAL NOT NULL, z REAL NOT NULL,
  PRIMARY KEY(mesh, idx)
);

CREATE TABLE IF NOT EXISTS mesh_triangles(
  mesh TEXT NOT NULL,
  idx INTEGER NOT NULL,
  a INTEGER NOT NULL, b INTEGER NOT NULL, c INTEGER NOT NULL,
  PRIMARY KEY(mesh, idx)
);

CREATE TABLE IF NOT EXISTS outline_vertices(
  outline INTEGER NOT NULL,
  seq INTEGER NOT NULL,
  vertex INTEGER NOT NULL,
  PRIMARY KEY(outline, seq)
);

CREATE INDEX IF NOT EXISTS idx_edges_a ON edges(node_a);
CREATE INDEX IF NOT EXISTS idx_edges_b ON edges(node_b);
"""


def _coerce_path(path: Union[str, Path]) -> str:
    return str(Path(path))


def ensure_output_db(path: Union[str, Path]) -> SqlConnection:
    """Create ``path`` from scratch and return a writable connection."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.exists():
        LOGGER.debug("Replacing existing database %s", out_path)
        out_path.unlink()
    out = sqlite3.connect(_coerce_path(out_path))
    out.execute("PRAGMA foreign_keys=ON;")
    out.executescript(CREATE_SCHEMA)
    # Commit DDL so we start clean (Python sqlite3 wraps DDL in a txn)
    out.commit()
    return out


def _insert_mesh(cur: sqlite3.Cursor, name: str, mesh: MeshData) -> None:
    cur.executemany(
        "INSERT INTO mesh_vertices(mesh, idx, x, y, z) VALUES(?,?,?,?,?)",
        ((name, i, v[0], v[1], v[2]) for i, v in enumerate(mesh.vertices)),
    )
    cur.executemany(
        "INSERT INTO mesh_triangles(mesh, idx, a, b, c) VALUES(?,?,?,?,?)",
        ((name, i, a, b, c) for i, (a, b, c) in enumerate(mesh.iter_triangles())),
    )


def write_layout(path: Union[str, Path], layout: CaveLayout, graph: NavigationGraph) -> None:
    """Write ``layout`` and ``graph`` to ``path``.

    Any existing file at ``path`` is replaced.
    """

    radii = {point.id: point.radius for point in layout.points}
    out = ensure_output_db(path)
    try:
        cur = out.cursor()
        meta = {
            "schema_version": str(SCHEMA_VERSION),
            "generation_options": json.dumps(layout.options.to_json_dict(), sort_keys=True),
            "grid_width": str(layout.grid.width),
            "grid_height": str(layout.grid.height),
            "grid_rows": json.dumps(layout.grid.to_rows()),
        }
        cur.executemany("INSERT INTO meta(key, value) VALUES(?,?)", sorted(meta.items()))
        cur.executemany(
            "INSERT INTO nodes(id, x, y, z, radius) VALUES(?,?,?,?,?)",
            (
                (node.id, node.position[0], node.position[1], node.position[2], radii.get(node.id))
                for node in sorted(graph.nodes, key=lambda n: n.id)
            ),
        )
        cur.executemany(
            "INSERT INTO edges(handle, node_a, node_b, weight) VALUES(?,?,?,?)",
            (
                (edge.handle, edge.node_a, edge.node_b, edge.weight)
                for edge in sorted(graph.edges, key=lambda e: e.handle)
            ),
        )
        _insert_mesh(cur, MESH_FLOOR, layout.floor)
        _insert_mesh(cur, MESH_WALLS, layout.walls)
        cur.executemany(
            "INSERT INTO outline_vertices(outline, seq, vertex) VALUES(?,?,?)",
            (
                (outline_idx, seq, vertex)
                for outline_idx, outline in enumerate(layout.outlines)
                for seq, vertex in enumerate(outline)
            ),
        )
        out.commit()
    finally:
        out.close()
    LOGGER.info(
        "write_layout: path=%s nodes=%d edges=%d outlines=%d",
        str(path),
        len(graph),
        graph.edge_count,
        len(layout.outlines),
    )


def open_connection(db_path: Union[str, Path]) -> SqlConnection:
    """Return a SQLite connection opened in read-only mode.

    The returned connection uses ``sqlite3.Row`` for ``row_factory`` so
    that column access by name is available to all downstream helpers.
    A missing file raises ``sqlite3.OperationalError`` instead of being
    created.
    """

    path = _coerce_path(db_path)
    uri = f"file:{Path(path).absolute()}?mode=ro"
    conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.isolation_level = None  # autocommit; readers never write
    return conn


@dataclass(slots=True)
class NodeRow:
    """Typed view of ``nodes``."""

    id: int
    position: Vec3
    radius: Optional[float]


@dataclass(slots=True)
class EdgeRow:
    """Typed view of ``edges``."""

    handle: int
    node_a: int
    node_b: int
    weight: float


@dataclass(slots=True)
class Database:
    """Read-only helper over a database written by :func:`write_layout`."""

    connection: SqlConnection = field(repr=False)

    _sql_meta: str = field(init=False, default="SELECT key, value FROM meta")
    _sql_nodes: str = field(init=False, default=(
        "SELECT id, x, y, z, radius FROM nodes ORDER BY id ASC"
    ))
    _sql_edges: str = field(init=False, default=(
        "SELECT handle, node_a, node_b, weight FROM edges ORDER BY handle ASC"
    ))
    _sql_mesh_vertices: str = field(init=False, default=(
        "SELECT x, y, z FROM mesh_vertices WHERE mesh = ? ORDER BY idx ASC"
    ))
    _sql_mesh_triangles: str = field(init=False, default=(
        "SELECT a, b, c FROM mesh_triangles WHERE mesh = ? ORDER BY idx ASC"
    ))
    _sql_outline_vertices: str = field(init=False, default=(
        "SELECT outline, vertex FROM outline_vertices ORDER BY outline ASC, seq ASC"
    ))

    @classmethod
    def connect(cls, db_path: Union[str, Path]) -> "Database":
        """Create a :class:`Database` bound to ``db_path``."""

        return cls(open_connection(db_path))

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        self.connection.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch_meta(self) -> Dict[str, str]:
        return {row["key"]: row["value"] for row in self.connection.execute(self._sql_meta)}

    def iter_nodes(self) -> Iterator[NodeRow]:
        """Yield stored nodes in ascending id order."""

        for row in self.connection.execute(self._sql_nodes):
            yield NodeRow(
                id=row["id"],
                position=(row["x"], row["y"], row["z"]),
                radius=row["radius"],
            )

    def fetch_nodes(self) -> List[NodeRow]:
        return list(self.iter_nodes())

    def iter_edges(self) -> Iterator[EdgeRow]:
        """Yield stored edges in ascending handle order."""

        for row in self.connection.execute(self._sql_edges):
            yield EdgeRow(
                handle=row["handle"],
                node_a=row["node_a"],
                node_b=row["node_b"],
                weight=row["weight"],
            )

    def fetch_edges(self) -> List[EdgeRow]:
        return list(self.iter_edges())

    def fetch_mesh(self, name: str = MESH_FLOOR) -> MeshData:
        """Return the stored ``floor`` or ``walls`` mesh."""

        mesh = MeshData()
        for row in self.connection.execute(self._sql_mesh_vertices, (name,)):
            mesh.vertices.append((row["x"], row["y"], row["z"]))
        for row in self.connection.execute(self._sql_mesh_triangles, (name,)):
            mesh.triangles.extend((row["a"], row["b"], row["c"]))
        return mesh

    def fetch_outlines(self) -> List[Outline]:
        outlines: List[Outline] = []
        current: Optional[int] = None
        for row in self.connection.execute(self._sql_outline_vertices):
            if row["outline"] != current:
                current = row["outline"]
                outlines.append([])
            outlines[-1].append(row["vertex"])
        return outlines

    def load_graph(self) -> NavigationGraph:
        """Rebuild the stored navigation graph.

        Node ids are preserved and edges are re-added in handle order, so
        neighbour iteration matches the graph that was written.
        """

        graph = NavigationGraph()
        for node in self.iter_nodes():
            graph.add_node(node.position, node_id=node.id)
        for edge in self.iter_edges():
            graph.add_edge(edge.node_a, edge.node_b)
        LOGGER.debug("Loaded graph: nodes=%d edges=%d", len(graph), graph.edge_count)
        return graph


__all__ = [
    "CREATE_SCHEMA",
    "Database",
    "EdgeRow",
    "NodeRow",
    "ensure_output_db",
    "open_connection",
    "write_layout",
]
