"""
MirrorPool SQLite Store -- persisted thought records.

All thoughts live in a single SQLite database. Thoughts are keyed by a
content-derived id and ordered by their rowid (``seq``), which is also the
creation order. The connection graph and synthesis tracker keep their own
tables in the same database and share this store's connection, so an
ingestion can commit a thought, its edges and its stage atomically.

Usage:
    store = SQLiteStore()
    thought = store.create("I want to grow", DepthLevel.DEEP, ["want", "grow"], ["neutral"], "neutral")
    earlier = store.query_by_keyword("grow", before=thought.seq)
"""

import contextlib
import json
import logging
import os
import sqlite3
import threading
import time as _time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from mirrorpool.config import mirrorpool_home
from mirrorpool.errors import InvalidReferenceError, StageLockedError, ValidationError
from mirrorpool.lexicon import content_hash, normalize_text, thought_id
from mirrorpool.types import DepthLevel, Thought

logger = logging.getLogger("mirrorpool.sqlite_store")

SCHEMA_VERSION = 1
EXPORT_VERSION = "mirrorpool-jsonl-v1"

# ---------------------------------------------------------------------------
# SQLite retry -- a second process (CLI next to a running server) can hold the
# write lock briefly. busy_timeout covers most cases; this covers the rest.
# ---------------------------------------------------------------------------
_DB_RETRY_ATTEMPTS = 3
_DB_RETRY_BASE_DELAY = 0.5  # seconds


def _retry_on_locked(fn, *args, **kwargs):
    """Call fn with retry on 'database is locked' OperationalError."""
    for attempt in range(_DB_RETRY_ATTEMPTS):
        try:
            return fn(*args, **kwargs)
        except sqlite3.OperationalError as e:
            if "database is locked" in str(e) and attempt < _DB_RETRY_ATTEMPTS - 1:
                delay = _DB_RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning("database is locked (attempt %d/%d), retrying in %.1fs",
                               attempt + 1, _DB_RETRY_ATTEMPTS, delay)
                _time.sleep(delay)
            else:
                raise


def to_utc(dt: datetime) -> datetime:
    """Normalize to an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(dt: datetime) -> str:
    """Fixed-width ISO timestamp so stored values sort lexicographically."""
    return to_utc(dt).isoformat(timespec="microseconds")


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid timestamp: {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(value))
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {value!r}") from e


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_THOUGHT_COLUMNS = """id, thought_id, content, depth_level, created_at, keywords, affect_tags,
                      expression_style, resonance, stage, stage_assigned, metadata"""


class SQLiteStore:
    """SQLite-backed thought store.

    Writes are serialized by a re-entrant lock; ``transaction()`` holds it for
    the whole block so a multi-step ingestion is never interleaved.
    """

    _MAX_CONTENT_SIZE = int(os.environ.get("MIRRORPOOL_MAX_CONTENT_SIZE", "100000"))

    def __init__(self, db_path=None):
        if db_path is not None and str(db_path) == ":memory:":
            self.db_path = Path(":memory:")
            self._in_memory = True
        else:
            self.db_path = Path(db_path) if db_path else (mirrorpool_home() / "mirrorpool.db")
            self.db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._in_memory = False

        self._lock = threading.RLock()
        self._tx_depth = 0
        self._closed = False
        self._conn = self._connect()
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection and schema
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        from mirrorpool.crypto import secure_connect

        conn = secure_connect(
            ":memory:" if self._in_memory else self.db_path,
            timeout=30,
            check_same_thread=False,
        )
        if not self._in_memory:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER NOT NULL
            )
        """)
        row = c.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
        if row is None:
            c.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            logger.info("Initialized thought store schema v%d at %s", SCHEMA_VERSION, self.db_path)

        c.execute("""
            CREATE TABLE IF NOT EXISTS thoughts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                thought_id TEXT UNIQUE NOT NULL,
                content TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                depth_level TEXT NOT NULL,
                created_at TEXT NOT NULL,
                keywords TEXT NOT NULL DEFAULT '[]',
                affect_tags TEXT NOT NULL DEFAULT '["neutral"]',
                expression_style TEXT NOT NULL DEFAULT 'neutral',
                resonance REAL NOT NULL DEFAULT 0.0,
                stage INTEGER NOT NULL DEFAULT 1,
                stage_assigned INTEGER NOT NULL DEFAULT 0,
                metadata TEXT
            )
        """)
        for col in ("content_hash", "created_at", "depth_level"):
            c.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_thoughts_{col}
                ON thoughts({col})
            """)
        c.commit()

    # ------------------------------------------------------------------
    # Low-level helpers shared with the graph and synthesis tables
    # ------------------------------------------------------------------

    def execute(self, sql: str, params=()) -> sqlite3.Cursor:
        """Run SQL with retry on 'database is locked'."""
        with self._lock:
            return _retry_on_locked(self._conn.execute, sql, params)

    def commit(self) -> None:
        """Commit unless inside ``transaction()``; the outermost block commits."""
        if self._tx_depth > 0:
            return
        _retry_on_locked(self._conn.commit)

    @contextlib.contextmanager
    def transaction(self) -> Iterator["SQLiteStore"]:
        """Group writes: commit on success, roll back everything on error.

        Nested blocks join the outermost transaction.
        """
        with self._lock:
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if self._tx_depth == 0:
                    self._conn.rollback()
                    logger.debug("Transaction rolled back")
                raise
            else:
                self._tx_depth -= 1
                if self._tx_depth == 0:
                    _retry_on_locked(self._conn.commit)

    # ------------------------------------------------------------------
    # Thought CRUD
    # ------------------------------------------------------------------

    def _latest_created_at(self) -> Optional[datetime]:
        row = self.execute("SELECT created_at FROM thoughts ORDER BY id DESC LIMIT 1").fetchone()
        return parse_ts(row[0]) if row else None

    def create(
        self,
        text: str,
        depth_level: DepthLevel = DepthLevel.DEEP,
        keywords: Optional[List[str]] = None,
        affect_tags: Optional[List[str]] = None,
        expression_style: str = "neutral",
        resonance: float = 0.0,
        created_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Thought:
        """Persist a thought. Identical text returns the existing record."""
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text must be a non-empty string")
        if len(text) > self._MAX_CONTENT_SIZE:
            raise ValidationError(
                f"Thought size ({len(text):,} chars) exceeds limit ({self._MAX_CONTENT_SIZE:,}). "
                "Override with MIRRORPOOL_MAX_CONTENT_SIZE env var."
            )
        text = normalize_text(text)
        depth_level = DepthLevel.parse(depth_level)
        digest = content_hash(text)

        with self._lock:
            existing = self._fetch_one("WHERE content_hash = ?", (digest,))
            if existing is not None:
                return existing

            latest = self._latest_created_at()
            if created_at is None:
                ts = datetime.now(timezone.utc)
                if latest is not None and ts < latest:
                    ts = latest
            else:
                ts = to_utc(created_at)
                if latest is not None and ts < latest:
                    raise ValidationError(
                        f"created_at {ts.isoformat()} precedes the latest thought ({latest.isoformat()})"
                    )

            tid = thought_id(text)
            tags = sorted(set(affect_tags or ["neutral"]))
            cursor = self.execute(
                """INSERT INTO thoughts
                   (thought_id, content, content_hash, depth_level, created_at, keywords,
                    affect_tags, expression_style, resonance, metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    tid,
                    text,
                    digest,
                    depth_level.value,
                    format_ts(ts),
                    json.dumps(list(keywords or [])),
                    json.dumps(tags),
                    expression_style,
                    float(resonance),
                    json.dumps(metadata or {}),
                ),
            )
            self.commit()

        return Thought(
            id=tid,
            seq=cursor.lastrowid,
            text=text,
            depth_level=depth_level,
            created_at=ts,
            keywords=keywords,
            affect_tags=tags,
            expression_style=expression_style,
            resonance=float(resonance),
            metadata=metadata,
        )

    def restore(self, thought: Thought) -> bool:
        """Insert an exported thought verbatim (stage included).

        False if already present or older than the newest stored thought.
        """
        created_at = to_utc(thought.created_at)
        with self._lock:
            if self.exists(thought.id):
                return False
            latest = self._latest_created_at()
            if latest is not None and created_at < latest:
                logger.debug("Not restoring %s: %s precedes %s", thought.id,
                             created_at.isoformat(), latest.isoformat())
                return False
            self.execute(
                """INSERT INTO thoughts
                   (thought_id, content, content_hash, depth_level, created_at, keywords,
                    affect_tags, expression_style, resonance, stage, stage_assigned, metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    thought.id,
                    thought.text,
                    content_hash(thought.text),
                    thought.depth_level.value,
                    format_ts(created_at),
                    json.dumps(thought.keywords),
                    json.dumps(thought.affect_tags),
                    thought.expression_style,
                    float(thought.resonance),
                    int(thought.stage),
                    1 if thought.stage_assigned else 0,
                    json.dumps(thought.metadata),
                ),
            )
            self.commit()
        return True

    def get_by_id(self, thought_id_: str) -> Optional[Thought]:
        return self._fetch_one("WHERE thought_id = ?", (thought_id_,))

    def get_by_text(self, text: str) -> Optional[Thought]:
        """Resolve a thought by its exact (whitespace-trimmed) text."""
        if not text or not text.strip():
            return None
        return self._fetch_one("WHERE content_hash = ?", (content_hash(text),))

    def exists(self, thought_id_: str) -> bool:
        row = self.execute("SELECT 1 FROM thoughts WHERE thought_id = ?", (thought_id_,)).fetchone()
        return row is not None

    def get_many(self, thought_ids: List[str]) -> Dict[str, Thought]:
        if not thought_ids:
            return {}
        placeholders = ",".join("?" for _ in thought_ids)
        return {
            t.id: t for t in self._fetch_all(f"WHERE thought_id IN ({placeholders})", tuple(thought_ids))
        }

    def update_stage(self, thought_id_: str, stage: int) -> None:
        """Assign a thought's stage. Write-once: a second assignment is rejected."""
        if not isinstance(stage, int) or stage < 1:
            raise ValidationError(f"stage must be a positive integer, got {stage!r}")
        with self._lock:
            row = self.execute(
                "SELECT stage, stage_assigned FROM thoughts WHERE thought_id = ?", (thought_id_,)
            ).fetchone()
            if row is None:
                raise InvalidReferenceError(f"Unknown thought id: {thought_id_}")
            if row[1]:
                raise StageLockedError(f"Stage of {thought_id_} is already assigned ({row[0]})")
            self.execute(
                "UPDATE thoughts SET stage = ?, stage_assigned = 1 WHERE thought_id = ?",
                (stage, thought_id_),
            )
            self.commit()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_by_keyword(
        self, keyword: str, before: Optional[int] = None, limit: Optional[int] = None
    ) -> List[Thought]:
        """Thoughts whose text contains ``keyword`` (case-insensitive), most recent first.

        ``before`` is a ``seq``; only strictly earlier thoughts are returned.
        """
        if not keyword:
            return []
        clause = "WHERE LOWER(content) LIKE ? ESCAPE '\\'"
        params: List[Any] = [f"%{_escape_like(keyword.lower())}%"]
        if before is not None:
            clause += " AND id < ?"
            params.append(before)
        clause += " ORDER BY id DESC"
        if limit is not None:
            clause += " LIMIT ?"
            params.append(limit)
        return self._fetch_all(clause, tuple(params))

    def query_by_time_range(self, start: Optional[datetime], end: Optional[datetime]) -> List[Thought]:
        """Thoughts created within [start, end] (either bound may be None), oldest first."""
        conditions = []
        params: List[Any] = []
        if start is not None:
            conditions.append("created_at >= ?")
            params.append(format_ts(start))
        if end is not None:
            conditions.append("created_at <= ?")
            params.append(format_ts(end))
        where = f"WHERE {' AND '.join(conditions)} " if conditions else ""
        return self._fetch_all(f"{where}ORDER BY id ASC", tuple(params))

    def recent(self, limit: int = 10, before: Optional[int] = None) -> List[Thought]:
        """The ``limit`` most recent thoughts (optionally strictly before a seq), newest first."""
        if limit <= 0:
            return []
        if before is not None:
            return self._fetch_all("WHERE id < ? ORDER BY id DESC LIMIT ?", (before, limit))
        return self._fetch_all("ORDER BY id DESC LIMIT ?", (limit,))

    def all_thoughts(self) -> List[Thought]:
        """Every thought, oldest first."""
        return self._fetch_all("ORDER BY id ASC", ())

    def thought_count(self) -> int:
        return self.execute("SELECT COUNT(*) FROM thoughts").fetchone()[0]

    def depth_distribution(self) -> Dict[str, int]:
        rows = self.execute(
            "SELECT depth_level, COUNT(*) FROM thoughts GROUP BY depth_level ORDER BY depth_level"
        ).fetchall()
        return {level: count for level, count in rows}

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_to_file(self, filepath: Path) -> Dict[str, Any]:
        """Export all thoughts as JSONL, one (optionally encrypted) record per line."""
        from mirrorpool.crypto import encrypt_line, is_active

        encrypted = is_active()
        thoughts = self.all_thoughts()
        lines = []
        for t in thoughts:
            record = t.to_dict()
            record["version"] = EXPORT_VERSION
            record["metadata"] = t.metadata
            lines.append(encrypt_line(json.dumps(record)))

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        payload = ("\n".join(lines) + "\n" if lines else "").encode("utf-8")
        fd = os.open(str(filepath), os.O_CREAT | os.O_WRONLY | os.O_TRUNC | os.O_NOFOLLOW, 0o600)
        try:
            os.write(fd, payload)
        finally:
            os.close(fd)

        logger.info("Exported %d thoughts to %s", len(thoughts), filepath)
        return {
            "filepath": str(filepath),
            "thoughtCount": len(thoughts),
            "encrypted": encrypted,
            "exportedAt": datetime.now(timezone.utc).isoformat(),
        }

    def import_from_file(self, filepath: Path, ingest=None) -> Dict[str, Any]:
        """Import a JSONL export in file order.

        With ``ingest`` (the engine's ingest callable) records are re-ingested so
        edges and stages are recomputed; without it they are restored verbatim.
        Records already present or older than the current corpus are skipped.
        """
        from mirrorpool.crypto import decrypt_line

        filepath = Path(filepath)
        if filepath.is_symlink():
            raise ValidationError("Import file must not be a symlink")
        if not filepath.exists():
            raise ValidationError(f"Import file not found: {filepath}")

        imported = 0
        skipped = 0
        with open(filepath, "r", encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(decrypt_line(line))
                except ValueError as e:
                    raise ValidationError(f"Unreadable record on line {line_no}: {e}") from e

                try:
                    if not isinstance(record, dict):
                        raise ValidationError(f"Record on line {line_no} is not an object")
                    created_at = parse_ts(record.get("createdAt"))
                    if ingest is not None:
                        result = ingest(
                            record["text"],
                            depth_level=record.get("depthLevel", DepthLevel.DEEP.value),
                            created_at=created_at,
                            metadata=record.get("metadata"),
                        )
                        added = not result.get("duplicate", False)
                    else:
                        added = self.restore(Thought(
                            id=record.get("id") or thought_id(record["text"]),
                            text=normalize_text(record["text"]),
                            depth_level=DepthLevel.parse(record.get("depthLevel", "deep")),
                            created_at=created_at,
                            keywords=record.get("keywords"),
                            affect_tags=record.get("affectTags"),
                            expression_style=record.get("expressionStyle", "neutral"),
                            resonance=float(record.get("resonance", 0.0)),
                            stage=int(record.get("stage", 1)),
                            stage_assigned=True,
                            metadata=record.get("metadata"),
                        ))
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug("Skipping record on line %d: %s", line_no, e)
                    added = False
                if added:
                    imported += 1
                else:
                    skipped += 1

        logger.info("Imported %d thoughts from %s (%d skipped)", imported, filepath, skipped)
        return {"filepath": str(filepath), "imported": imported, "skipped": skipped}

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _fetch_one(self, clause: str, params: tuple) -> Optional[Thought]:
        row = self.execute(f"SELECT {_THOUGHT_COLUMNS} FROM thoughts {clause} LIMIT 1", params).fetchone()
        return self._row_to_thought(row) if row else None

    def _fetch_all(self, clause: str, params: tuple) -> List[Thought]:
        rows = self.execute(f"SELECT {_THOUGHT_COLUMNS} FROM thoughts {clause}", params).fetchall()
        return [self._row_to_thought(row) for row in rows]

    @staticmethod
    def _row_to_thought(row: tuple) -> Thought:
        (seq, tid, content, depth_level, created_at, keywords_json, affect_json,
         style, resonance, stage, stage_assigned, metadata_json) = row
        return Thought(
            id=tid,
            seq=seq,
            text=content,
            depth_level=DepthLevel(depth_level),
            created_at=parse_ts(created_at),
            keywords=json.loads(keywords_json) if keywords_json else [],
            affect_tags=json.loads(affect_json) if affect_json else ["neutral"],
            expression_style=style or "neutral",
            resonance=resonance or 0.0,
            stage=stage or 1,
            stage_assigned=bool(stage_assigned),
            metadata=json.loads(metadata_json) if metadata_json else {},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._closed:
            return
        self._closed = True
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.debug("Database close failed: %s", e)

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass  # no logger guarantee during GC
