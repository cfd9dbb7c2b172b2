"""
Version Store v1.0.0
====================
Persistence boundary for revisions.

The comparison engine only needs get_revision() and save(). Revisions are
append-only: save() always creates a new row and never updates one, and
every read returns a fresh immutable Revision.

Lineage rules enforced on save:
- the parent (if any) must exist
- the version must sort strictly after the parent's version
- a candidate without a version gets the parent's next patch release
"""

import json
import sqlite3
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from config_logging import get_config, get_logger, LineageError, RevisionNotFound
from .models import Revision, RevisionStatus, format_timestamp, parse_timestamp
from .semver import bump, is_newer, parse_version

logger = get_logger('version_compare.store')

INITIAL_VERSION = "1.0.0"


def _duplicate(revision_id: str) -> LineageError:
    return LineageError(f"Revision {revision_id} already exists; revisions are immutable",
                        revision_id=revision_id)


class VersionStore:
    """Base class for revision stores."""

    def get_revision(self, revision_id: str) -> Revision:
        """
        Fetch one revision.

        Raises:
            RevisionNotFound: if the id is unknown
        """
        raise NotImplementedError("Subclasses must implement get_revision()")

    def list_revisions(self, component_id: Optional[str] = None) -> List[Revision]:
        """Revisions oldest first, optionally for one component."""
        raise NotImplementedError("Subclasses must implement list_revisions()")

    def _exists(self, revision_id: str) -> bool:
        raise NotImplementedError

    def _insert(self, revision: Revision):
        """
        Write a new revision.

        Raises:
            LineageError: if the id is already taken; the check and the
                write happen atomically
        """
        raise NotImplementedError

    def _new_id(self) -> str:
        return f"rev-{uuid.uuid4().hex[:12]}"

    def save(self, revision: Revision) -> Revision:
        """
        Persist a revision (usually a reconciliation candidate).

        Returns:
            The stored revision with its final id and version

        Raises:
            RevisionNotFound: if the parent does not exist
            LineageError: if the id is taken or the version does not advance
        """
        if revision.id is not None and self._exists(revision.id):
            raise _duplicate(revision.id)

        parent = self.get_revision(revision.parent_id) if revision.parent_id else None

        version = revision.version
        if not version:
            version = bump(parent.version) if parent else INITIAL_VERSION
        parse_version(version)

        if parent is not None and not is_newer(version, parent.version):
            raise LineageError(
                f"Version {version} must be greater than parent version {parent.version}",
                version=version, parent_version=parent.version, parent_id=parent.id
            )

        saved = replace(
            revision,
            id=revision.id or self._new_id(),
            version=version,
            component_id=revision.component_id or (parent.component_id if parent else ""),
        )
        self._insert(saved)
        logger.info(f"Saved revision {saved.id} version {saved.version}",
                    revision_id=saved.id, parent_id=saved.parent_id)
        return saved

    def history(self, revision_id: str) -> List[Revision]:
        """
        The revision followed by its ancestors, newest first.

        Raises:
            LineageError: if the parent chain loops
        """
        chain: List[Revision] = []
        seen = set()
        current: Optional[str] = revision_id
        while current is not None:
            if current in seen:
                raise LineageError(f"Parent chain of {revision_id} contains a cycle at {current}",
                                   revision_id=revision_id)
            seen.add(current)
            revision = self.get_revision(current)
            chain.append(revision)
            current = revision.parent_id
        return chain


class InMemoryVersionStore(VersionStore):
    """Dictionary-backed store for tests and embedding."""

    def __init__(self):
        self._revisions: Dict[str, Revision] = {}
        self._lock = threading.Lock()
        self._counter = 0

    def _new_id(self) -> str:
        with self._lock:
            self._counter += 1
            return f"rev-{self._counter}"

    def _exists(self, revision_id: str) -> bool:
        return revision_id in self._revisions

    def _insert(self, revision: Revision):
        with self._lock:
            if revision.id in self._revisions:
                raise _duplicate(revision.id)
            self._revisions[revision.id] = revision

    def get_revision(self, revision_id: str) -> Revision:
        revision = self._revisions.get(revision_id)
        if revision is None:
            raise RevisionNotFound(revision_id)
        return revision

    def list_revisions(self, component_id: Optional[str] = None) -> List[Revision]:
        with self._lock:
            revisions = list(self._revisions.values())
        return [r for r in revisions
                if component_id is None or r.component_id == component_id]


class SqliteVersionStore(VersionStore):
    """SQLite-backed revision store."""

    def __init__(self, db_path: str = None):
        """Initialize the database."""
        if db_path is None:
            db_path = str(get_config().db_path)
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Initialize database tables."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS revisions (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    component_id TEXT NOT NULL DEFAULT '',
                    version TEXT NOT NULL,
                    parent_id TEXT,
                    author_id TEXT,
                    status TEXT NOT NULL DEFAULT 'draft',
                    created_at TEXT NOT NULL,
                    sections_json TEXT NOT NULL
                )
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_revisions_component
                ON revisions(component_id)
            ''')
            conn.commit()
        finally:
            conn.close()

    def _row_to_revision(self, row: sqlite3.Row) -> Revision:
        return Revision(
            id=row['id'],
            version=row['version'],
            sections=json.loads(row['sections_json'] or '{}'),
            created_at=parse_timestamp(row['created_at']),
            author_id=row['author_id'] or "",
            parent_id=row['parent_id'],
            status=row['status'] or RevisionStatus.DRAFT.value,
            component_id=row['component_id'] or "",
        )

    def _exists(self, revision_id: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute('SELECT 1 FROM revisions WHERE id = ?', (revision_id,)).fetchone()
        finally:
            conn.close()
        return row is not None

    def _insert(self, revision: Revision):
        sections = {kind.value: text for kind, text in revision.sections.items()}
        conn = self._connect()
        try:
            conn.execute('''
                INSERT INTO revisions
                    (id, component_id, version, parent_id, author_id, status, created_at, sections_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                revision.id,
                revision.component_id,
                revision.version,
                revision.parent_id,
                revision.author_id,
                revision.status.value,
                format_timestamp(revision.created_at),
                json.dumps(sections, ensure_ascii=False),
            ))
            conn.commit()
        except sqlite3.IntegrityError:
            raise _duplicate(revision.id)
        finally:
            conn.close()

    def get_revision(self, revision_id: str) -> Revision:
        conn = self._connect()
        try:
            row = conn.execute('SELECT * FROM revisions WHERE id = ?', (revision_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise RevisionNotFound(revision_id)
        return self._row_to_revision(row)

    def list_revisions(self, component_id: Optional[str] = None) -> List[Revision]:
        conn = self._connect()
        try:
            if component_id is None:
                rows = conn.execute('SELECT * FROM revisions ORDER BY seq').fetchall()
            else:
                rows = conn.execute(
                    'SELECT * FROM revisions WHERE component_id = ? ORDER BY seq',
                    (component_id,)
                ).fetchall()
        finally:
            conn.close()
        return [self._row_to_revision(row) for row in rows]

    def count(self) -> int:
        conn = self._connect()
        try:
            return conn.execute('SELECT COUNT(*) FROM revisions').fetchone()[0]
        finally:
            conn.close()


# Singleton instance
_store_instance: Optional[SqliteVersionStore] = None

def get_version_store() -> SqliteVersionStore:
    """Get singleton instance of the SQLite version store."""
    global _store_instance
    if _store_instance is None:
        _store_instance = SqliteVersionStore()
    return _store_instance
