"""SQLite snapshot store for categorized file versions.

Schema:
- ``files``          one row per tracked file name
- ``file_versions``  a snapshot of a file's source, keyed by content hash
- ``functions``      function declarations deduplicated by fingerprint, so
                     versions sharing a function point at the same row
- ``statements``     ordered top-level entries of each version
- ``declarations``   name index over declarations of every version
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from .fingerprint import digest
from .models import Entry, NodeKind

logger = logging.getLogger(__name__)


@dataclass
class VersionInfo:
    fv_id: int
    file_name: str
    file_hash: str
    created_at: str
    statement_count: int = 0


class SnapshotStore:
    """Persists file versions and their top-level statements."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS files (
                f_id      INTEGER PRIMARY KEY AUTOINCREMENT,
                file_name TEXT NOT NULL UNIQUE
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS file_versions (
                fv_id      INTEGER PRIMARY KEY AUTOINCREMENT,
                f_id       INTEGER NOT NULL REFERENCES files(f_id),
                file_hash  TEXT NOT NULL,
                source     TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS functions (
                fn_id         INTEGER PRIMARY KEY AUTOINCREMENT,
                func_hash     TEXT NOT NULL UNIQUE,
                function_name TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS statements (
                st_id        INTEGER PRIMARY KEY AUTOINCREMENT,
                fv_id        INTEGER NOT NULL REFERENCES file_versions(fv_id),
                idx          INTEGER NOT NULL,
                node_type    TEXT NOT NULL,
                identity     TEXT,
                fingerprint  TEXT NOT NULL,
                start_offset INTEGER NOT NULL,
                end_offset   INTEGER NOT NULL,
                summary      TEXT,
                fn_id        INTEGER REFERENCES functions(fn_id)
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS declarations (
                d_id  INTEGER PRIMARY KEY AUTOINCREMENT,
                name  TEXT NOT NULL,
                fv_id INTEGER NOT NULL REFERENCES file_versions(fv_id),
                st_id INTEGER NOT NULL REFERENCES statements(st_id)
            )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_versions_file ON file_versions(f_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_versions_hash ON file_versions(file_hash)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_statements_version ON statements(fv_id, idx)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_declarations_name ON declarations(name)")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def _file_id(self, file_name: str) -> int:
        cur = self.conn.cursor()
        cur.execute("INSERT OR IGNORE INTO files (file_name) VALUES (?)", (file_name,))
        row = cur.execute("SELECT f_id FROM files WHERE file_name = ?", (file_name,)).fetchone()
        return int(row["f_id"])

    def _function_id(self, entry: Entry) -> int:
        cur = self.conn.cursor()
        name = (entry.identity_key or "").removeprefix("func:")
        cur.execute(
            "INSERT OR IGNORE INTO functions (func_hash, function_name) VALUES (?, ?)",
            (entry.fingerprint, name),
        )
        row = cur.execute(
            "SELECT fn_id FROM functions WHERE func_hash = ?", (entry.fingerprint,),
        ).fetchone()
        return int(row["fn_id"])

    def record_version(self, file_name: str, source: str, entries: Iterable[Entry]) -> int:
        """Store *source* and its entries as the newest version of *file_name*.

        Returns the existing version id when the source is unchanged since
        the latest snapshot.
        """
        file_hash = digest(source)
        latest = self.latest_version(file_name)
        if latest is not None and latest.file_hash == file_hash:
            logger.debug("Snapshot of %s unchanged (version %d)", file_name, latest.fv_id)
            return latest.fv_id

        f_id = self._file_id(file_name)
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO file_versions (f_id, file_hash, source, created_at) VALUES (?, ?, ?, ?)",
            (f_id, file_hash, source, datetime.now().isoformat()),
        )
        fv_id = int(cur.lastrowid)

        for entry in entries:
            fn_id = None
            if entry.node.kind is NodeKind.FUNCTION_DECLARATION:
                fn_id = self._function_id(entry)
            cur.execute(
                """
                INSERT INTO statements (
                    fv_id, idx, node_type, identity, fingerprint,
                    start_offset, end_offset, summary, fn_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    fv_id,
                    entry.source_index,
                    entry.node.type,
                    entry.identity_key,
                    entry.fingerprint,
                    entry.node.start,
                    entry.node.end,
                    entry.summary,
                    fn_id,
                ),
            )
            st_id = int(cur.lastrowid)
            if entry.identity_key and entry.identity_key.startswith(("func:", "var:")):
                name = entry.identity_key.split(":", 1)[1]
                cur.execute(
                    "INSERT INTO declarations (name, fv_id, st_id) VALUES (?, ?, ?)",
                    (name, fv_id, st_id),
                )

        self.conn.commit()
        logger.info("Stored %s as version %d", file_name, fv_id)
        return fv_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    _VERSION_QUERY = """
        SELECT v.fv_id, f.file_name, v.file_hash, v.created_at,
               (SELECT COUNT(*) FROM statements s WHERE s.fv_id = v.fv_id) AS statement_count
        FROM file_versions v JOIN files f ON f.f_id = v.f_id
    """

    @staticmethod
    def _version(row: sqlite3.Row) -> VersionInfo:
        return VersionInfo(
            fv_id=row["fv_id"],
            file_name=row["file_name"],
            file_hash=row["file_hash"],
            created_at=row["created_at"],
            statement_count=row["statement_count"],
        )

    def list_versions(self, file_name: str) -> List[VersionInfo]:
        rows = self.conn.execute(
            self._VERSION_QUERY + " WHERE f.file_name = ? ORDER BY v.fv_id",
            (file_name,),
        ).fetchall()
        return [self._version(r) for r in rows]

    def latest_version(self, file_name: str) -> Optional[VersionInfo]:
        row = self.conn.execute(
            self._VERSION_QUERY + " WHERE f.file_name = ? ORDER BY v.fv_id DESC LIMIT 1",
            (file_name,),
        ).fetchone()
        return self._version(row) if row is not None else None

    def get_version(self, fv_id: int) -> Optional[VersionInfo]:
        row = self.conn.execute(
            self._VERSION_QUERY + " WHERE v.fv_id = ?", (fv_id,),
        ).fetchone()
        return self._version(row) if row is not None else None

    def get_source(self, fv_id: int) -> Optional[str]:
        row = self.conn.execute(
            "SELECT source FROM file_versions WHERE fv_id = ?", (fv_id,),
        ).fetchone()
        return row["source"] if row is not None else None

    def get_statements(self, fv_id: int) -> List[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM statements WHERE fv_id = ? ORDER BY idx", (fv_id,),
        ).fetchall()

    def find_declarations(self, name: str) -> List[sqlite3.Row]:
        """Every stored declaration of *name*, oldest version first."""
        return self.conn.execute(
            """
            SELECT d.name, d.fv_id, f.file_name, s.idx, s.node_type, s.summary,
                   s.start_offset, s.end_offset
            FROM declarations d
            JOIN statements s ON s.st_id = d.st_id
            JOIN file_versions v ON v.fv_id = d.fv_id
            JOIN files f ON f.f_id = v.f_id
            WHERE d.name = ?
            ORDER BY d.fv_id, s.idx
            """,
            (name,),
        ).fetchall()

    def count_functions(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM functions").fetchone()
        return int(row["n"])
