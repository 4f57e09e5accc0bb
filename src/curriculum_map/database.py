"""
curriculum_map/database.py — SQLite persistence for guides and users
====================================================================
Stores every guide as one row in a `guides` table; the subject list is a
JSON blob on that row, so a guide's subjects are always read and written
as a single unit.  User accounts live in a `users` table used by AuthService.

Design decisions
----------------
- **Document-style rows** — subjects are embedded JSON rather than a child
  table.  An update replaces the whole subject list; there is no per-subject
  write path.
- **Last write wins** — no version column, no locking.  Two clients editing
  the same guide overwrite each other; acceptable for single-owner editing.
- **WAL journal mode** — readers do not block the writer.
- Every sqlite3 failure is re-raised as StoreError with the cause chained.

Guide record schema
-------------------
  id             TEXT PRIMARY KEY — uuid4 hex, assigned on create
  owner_id       TEXT NOT NULL    — uid of the creating user (immutable)
  name           TEXT NOT NULL
  institution    TEXT
  period_type    TEXT             — semester | quarter | trimester | bimester
  is_public      INTEGER          — 0 / 1
  theme          TEXT             — ThemeId value
  subjects_json  TEXT             — JSON list of Subject records
  created_at     TEXT             — ISO-8601
  updated_at     TEXT             — ISO-8601

Public API
----------
  init_db(db_path)                    create tables if they don't exist
  GuideStore.create(guide)            → guide id
  GuideStore.get_by_id(id)            → Guide (NotFoundError if missing)
  GuideStore.query_by_owner(uid)      → list[Guide]
  GuideStore.query_public()           → list[Guide]
  GuideStore.update(id, fields)       merge whitelisted fields into the row
  GuideStore.delete(id)
  UserStore.create_user / get_user / get_user_by_email
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import pydantic

from curriculum_map.errors import NotFoundError, StoreError, ValidationError
from curriculum_map.models import Guide, PeriodType, Subject, parse_theme

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS guides (
    id              TEXT    PRIMARY KEY,
    owner_id        TEXT    NOT NULL,
    name            TEXT    NOT NULL,
    institution     TEXT    DEFAULT '',
    period_type     TEXT    DEFAULT 'semester',
    is_public       INTEGER DEFAULT 0,
    theme           TEXT    DEFAULT 'default',
    subjects_json   TEXT    NOT NULL DEFAULT '[]',
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_guides_owner  ON guides (owner_id);
CREATE INDEX IF NOT EXISTS idx_guides_public ON guides (is_public);

CREATE TABLE IF NOT EXISTS users (
    uid             TEXT    PRIMARY KEY,
    email           TEXT    UNIQUE NOT NULL,
    password_hash   TEXT    NOT NULL,
    display_name    TEXT,
    country         TEXT,
    created_at      TEXT    DEFAULT (datetime('now'))
);
"""


def _get_conn(db_path: PathLike) -> sqlite3.Connection:
    """Return a connection with row_factory set."""
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


@contextmanager
def _session(db_path: PathLike, action: str) -> Iterator[sqlite3.Connection]:
    """Open a connection, commit on success, wrap sqlite errors as StoreError."""
    conn = None
    try:
        conn = _get_conn(db_path)
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        logger.error("Store failure while trying to %s: %s", action, exc)
        raise StoreError(f"Could not {action}: {exc}") from exc
    finally:
        if conn is not None:
            conn.close()


def init_db(db_path: PathLike) -> None:
    """Create tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    with _session(db_path, "initialise the database") as conn:
        conn.executescript(_SCHEMA)


# ─── Guides ───────────────────────────────────────────────────────────────────

def _subjects_to_json(subjects) -> str:
    return json.dumps([
        (s if isinstance(s, Subject) else Subject.model_validate(s)).model_dump(mode="json")
        for s in subjects
    ])


def _row_to_guide(row: sqlite3.Row) -> Guide:
    try:
        return Guide.model_validate({
            "id":          row["id"],
            "owner_id":    row["owner_id"],
            "name":        row["name"],
            "institution": row["institution"] or "",
            "period_type": row["period_type"],
            "is_public":   bool(row["is_public"]),
            "theme":       row["theme"],
            "subjects":    json.loads(row["subjects_json"] or "[]"),
            "created_at":  row["created_at"],
        })
    except (pydantic.ValidationError, json.JSONDecodeError) as exc:
        logger.error("Guide %s could not be decoded: %s", row["id"], exc)
        raise StoreError(f"Guide '{row['id']}' is corrupt: {exc}") from exc


class GuideStore:
    """Document store for guides, keyed by guide id."""

    # field name → (column, encoder)
    _UPDATABLE = {
        "subjects":    ("subjects_json", _subjects_to_json),
        "theme":       ("theme",         lambda v: parse_theme(v).value),
        "is_public":   ("is_public",     lambda v: int(bool(v))),
        "name":        ("name",          str),
        "institution": ("institution",   str),
        "period_type": ("period_type",   lambda v: PeriodType(v).value),
    }

    def __init__(self, db_path: PathLike):
        self.db_path = Path(db_path)

    def init_db(self) -> None:
        init_db(self.db_path)

    def create(self, guide: Guide) -> str:
        """Insert *guide* under a fresh id; sets ``guide.id`` and returns it."""
        guide_id = uuid.uuid4().hex
        with _session(self.db_path, "create a guide") as conn:
            conn.execute(
                """
                INSERT INTO guides
                    (id, owner_id, name, institution, period_type,
                     is_public, theme, subjects_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    guide_id, guide.owner_id, guide.name, guide.institution,
                    guide.period_type.value, int(guide.is_public), guide.theme.value,
                    _subjects_to_json(guide.subjects), guide.created_at.isoformat(),
                ),
            )
        guide.id = guide_id
        return guide_id

    def get_by_id(self, guide_id: str) -> Guide:
        with _session(self.db_path, "read a guide") as conn:
            row = conn.execute("SELECT * FROM guides WHERE id = ?", (guide_id,)).fetchone()
        if row is None:
            raise NotFoundError("guide_not_found", f"Guide '{guide_id}' does not exist.",
                                field="guide_id")
        return _row_to_guide(row)

    def query_by_owner(self, owner_id: str) -> list[Guide]:
        with _session(self.db_path, "list guides") as conn:
            rows = conn.execute(
                "SELECT * FROM guides WHERE owner_id = ? ORDER BY created_at DESC",
                (owner_id,),
            ).fetchall()
        return [_row_to_guide(r) for r in rows]

    def query_public(self) -> list[Guide]:
        with _session(self.db_path, "list public guides") as conn:
            rows = conn.execute(
                "SELECT * FROM guides WHERE is_public = 1 ORDER BY created_at DESC"
            ).fetchall()
        return [_row_to_guide(r) for r in rows]

    def update(self, guide_id: str, fields: dict) -> None:
        """Merge *fields* into the stored guide. Each field is replaced whole."""
        unknown = set(fields) - set(self._UPDATABLE)
        if unknown:
            raise ValidationError(
                "unknown_field", f"Cannot update guide field(s): {', '.join(sorted(unknown))}.",
            )
        if not fields:
            return
        assignments, values = [], []
        for name, value in fields.items():
            column, encode = self._UPDATABLE[name]
            try:
                encoded = encode(value)
            except (ValueError, pydantic.ValidationError) as exc:
                raise ValidationError("invalid_field", f"Invalid value for '{name}': {exc}",
                                      field=name) from exc
            assignments.append(f"{column} = ?")
            values.append(encoded)

        with _session(self.db_path, "update a guide") as conn:
            cur = conn.execute(
                f"UPDATE guides SET {', '.join(assignments)}, updated_at = datetime('now') "
                "WHERE id = ?",
                (*values, guide_id),
            )
            updated = cur.rowcount
        if not updated:
            raise NotFoundError("guide_not_found", f"Guide '{guide_id}' does not exist.",
                                field="guide_id")

    def delete(self, guide_id: str) -> None:
        with _session(self.db_path, "delete a guide") as conn:
            cur = conn.execute("DELETE FROM guides WHERE id = ?", (guide_id,))
            deleted = cur.rowcount
        if not deleted:
            raise NotFoundError("guide_not_found", f"Guide '{guide_id}' does not exist.",
                                field="guide_id")


# ─── Users ────────────────────────────────────────────────────────────────────

class UserStore:
    """Account records backing AuthService."""

    def __init__(self, db_path: PathLike):
        self.db_path = Path(db_path)

    def create_user(
        self,
        email: str,
        password_hash: str,
        display_name: Optional[str] = None,
        country: Optional[str] = None,
    ) -> str:
        uid = uuid.uuid4().hex
        with _session(self.db_path, "create a user") as conn:
            conn.execute(
                "INSERT INTO users (uid, email, password_hash, display_name, country) "
                "VALUES (?, ?, ?, ?, ?)",
                (uid, email, password_hash, display_name, country),
            )
        return uid

    def get_user(self, uid: str) -> Optional[dict]:
        with _session(self.db_path, "read a user") as conn:
            row = conn.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()
        return dict(row) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[dict]:
        with _session(self.db_path, "read a user") as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return dict(row) if row is not None else None
