"""
MirrorPool Connection Graph -- directed, typed edges between thoughts.

Edges live in the ``connections`` table of the thought store's database and
hold thought ids only. Each (source, target, type) triple exists at most once;
re-discovering an edge replaces its strength and keeps its insertion position.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from mirrorpool.errors import InvalidReferenceError, ValidationError
from mirrorpool.sqlite_store import SQLiteStore, format_ts, parse_ts
from mirrorpool.types import Connection

logger = logging.getLogger("mirrorpool.graph")

CONNECTION_TYPES = ("reflection", "influence")


class ConnectionGraph:
    """Adjacency index over the thought store."""

    def __init__(self, store: SQLiteStore):
        self.store = store
        self._init_schema()

    def _init_schema(self) -> None:
        self.store.execute("""
            CREATE TABLE IF NOT EXISTS connections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                conn_type TEXT NOT NULL,
                strength REAL NOT NULL DEFAULT 0.0,
                discovered_at TEXT NOT NULL,
                UNIQUE(source_id, target_id, conn_type)
            )
        """)
        self.store.execute("CREATE INDEX IF NOT EXISTS idx_connections_source ON connections(source_id)")
        self.store.execute("CREATE INDEX IF NOT EXISTS idx_connections_target ON connections(target_id)")
        self.store.commit()

    def connect(self, source_id: str, target_id: str, type: str = "reflection", strength: float = 0.0) -> Connection:
        """Insert or refresh the edge ``source -> target``.

        Raises InvalidReferenceError when either endpoint is not a stored thought.
        """
        if type not in CONNECTION_TYPES:
            raise ValidationError(f"connection type must be one of: {', '.join(CONNECTION_TYPES)} (got {type!r})")
        if source_id == target_id:
            raise ValidationError("a thought cannot connect to itself")
        for endpoint in (source_id, target_id):
            if not self.store.exists(endpoint):
                raise InvalidReferenceError(f"Unknown thought id: {endpoint}")

        strength = min(max(float(strength), 0.0), 1.0)
        now = datetime.now(timezone.utc)
        self.store.execute(
            """INSERT INTO connections (source_id, target_id, conn_type, strength, discovered_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(source_id, target_id, conn_type)
               DO UPDATE SET strength = excluded.strength, discovered_at = excluded.discovered_at""",
            (source_id, target_id, type, strength, format_ts(now)),
        )
        self.store.commit()
        logger.debug("connect %s -[%s:%.3f]-> %s", source_id, type, strength, target_id)
        return Connection(source_id, target_id, type, strength, now)

    def neighbors(self, thought_id: str) -> List[Connection]:
        """Outgoing edges in insertion order."""
        rows = self.store.execute(
            """SELECT source_id, target_id, conn_type, strength, discovered_at
               FROM connections WHERE source_id = ? ORDER BY id""",
            (thought_id,),
        ).fetchall()
        return [self._row_to_connection(r) for r in rows]

    def incoming(self, thought_id: str) -> List[Connection]:
        rows = self.store.execute(
            """SELECT source_id, target_id, conn_type, strength, discovered_at
               FROM connections WHERE target_id = ? ORDER BY id""",
            (thought_id,),
        ).fetchall()
        return [self._row_to_connection(r) for r in rows]

    def neighbor_ids(self, thought_id: str) -> List[str]:
        """Distinct outgoing targets, first-seen order."""
        seen: Dict[str, None] = {}
        for conn in self.neighbors(thought_id):
            seen.setdefault(conn.target_id, None)
        return list(seen)

    def edge_count(self) -> int:
        return self.store.execute("SELECT COUNT(*) FROM connections").fetchone()[0]

    def type_counts(self) -> Dict[str, int]:
        rows = self.store.execute(
            "SELECT conn_type, COUNT(*) FROM connections GROUP BY conn_type ORDER BY conn_type"
        ).fetchall()
        return {t: n for t, n in rows}

    @staticmethod
    def _row_to_connection(row: tuple) -> Connection:
        source_id, target_id, conn_type, strength, discovered_at = row
        return Connection(source_id, target_id, conn_type, strength, parse_ts(discovered_at))
