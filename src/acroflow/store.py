"""SQLite persistence for profiles, saved flows, and favourite poses."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from .models import SavedFlow

SCHEMA_VERSION = 2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    """User profile record."""

    id: int
    name: str


@dataclass(frozen=True)
class PoseComment:
    """Comment left on a pose by a profile."""

    id: int
    pose_id: str
    profile_id: int
    author_name: str | None
    content: str
    created_at: str


class FlowStore:
    """Database access layer for profiles, flows, and favourites."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            elif version == 2:
                self._migrate_to_v2()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )
            logger.info("Applied flow store migration %s", version)

    def _migrate_to_v1(self) -> None:
        """Create profile, flow, and favourite tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS flows (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    is_public INTEGER NOT NULL,
                    owner_id INTEGER NOT NULL,
                    steps_data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_flows_owner ON flows (owner_id)")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS favorites (
                    profile_id INTEGER NOT NULL,
                    pose_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (profile_id, pose_id)
                )
                """)

    def _migrate_to_v2(self) -> None:
        """Add pose comments."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    pose_id TEXT NOT NULL,
                    profile_id INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_pose ON comments (pose_id)")

    def list_profiles(self) -> list[Profile]:
        """Return profiles ordered by name."""
        rows = self._conn.execute("SELECT id, name FROM profiles ORDER BY name").fetchall()
        return [Profile(id=int(row["id"]), name=str(row["name"])) for row in rows]

    def create_profile(self, name: str) -> Profile:
        """Create a new profile."""
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO profiles (name, created_at) VALUES (?, ?)",
                (name, now),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not create profile.")
        return Profile(id=int(row_id), name=name)

    def get_profile(self, profile_id: int) -> Profile | None:
        """Get one profile by id."""
        row = self._conn.execute("SELECT id, name FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        if row is None:
            return None
        return Profile(id=int(row["id"]), name=str(row["name"]))

    def delete_profile(self, profile_id: int) -> bool:
        """Delete profile with everything it owns."""
        with self._conn:
            self._conn.execute("DELETE FROM comments WHERE profile_id = ?", (profile_id,))
            self._conn.execute("DELETE FROM favorites WHERE profile_id = ?", (profile_id,))
            self._conn.execute("DELETE FROM flows WHERE owner_id = ?", (profile_id,))
            cursor = self._conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        return cursor.rowcount > 0

    def create_flow(
        self,
        owner_id: int,
        name: str,
        description: str | None,
        is_public: bool,
        steps_data: str,
        *,
        created_at: str | None = None,
        updated_at: str | None = None,
    ) -> SavedFlow:
        """Insert a flow under a fresh URL-safe id."""
        now = datetime.now(UTC).isoformat()
        flow = SavedFlow(
            id=uuid4().hex,
            name=name,
            description=description,
            is_public=is_public,
            owner_id=owner_id,
            steps_data=steps_data,
            created_at=created_at or now,
            updated_at=updated_at or created_at or now,
        )
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO flows (id, name, description, is_public, owner_id, steps_data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    flow.id,
                    flow.name,
                    flow.description,
                    int(flow.is_public),
                    flow.owner_id,
                    flow.steps_data,
                    flow.created_at,
                    flow.updated_at,
                ),
            )
        logger.info("Created flow %s for profile %s", flow.id, owner_id)
        return flow

    def get_flow(self, flow_id: str) -> SavedFlow | None:
        """Get one flow by id."""
        row = self._conn.execute(
            """
            SELECT id, name, description, is_public, owner_id, steps_data, created_at, updated_at
            FROM flows
            WHERE id = ?
            """,
            (flow_id,),
        ).fetchone()
        if row is None:
            return None
        return _flow_from_row(row)

    def update_flow(
        self,
        flow_id: str,
        name: str,
        description: str | None,
        is_public: bool,
        steps_data: str,
    ) -> SavedFlow | None:
        """Replace editable fields and bump `updated_at`; None when missing."""
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                """
                UPDATE flows
                SET name = ?, description = ?, is_public = ?, steps_data = ?, updated_at = ?
                WHERE id = ?
                """,
                (name, description, int(is_public), steps_data, now, flow_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_flow(flow_id)

    def set_flow_visibility(self, flow_id: str, is_public: bool) -> SavedFlow | None:
        """Set public/private flag; None when missing."""
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE flows SET is_public = ?, updated_at = ? WHERE id = ?",
                (int(is_public), now, flow_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_flow(flow_id)

    def delete_flow(self, flow_id: str) -> bool:
        """Delete one flow."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM flows WHERE id = ?", (flow_id,))
        return cursor.rowcount > 0

    def list_flows(self, owner_id: int | None = None, include_public: bool = False) -> list[SavedFlow]:
        """Return flows newest first.

        - owner and include_public: the owner's flows plus every public flow
        - owner only: the owner's flows
        - include_public only: public flows
        - neither: all flows
        """
        clauses: list[str] = []
        params: list[object] = []
        if owner_id is not None and include_public:
            clauses.append("(owner_id = ? OR is_public = 1)")
            params.append(owner_id)
        elif owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        elif include_public:
            clauses.append("is_public = 1")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"""
            SELECT id, name, description, is_public, owner_id, steps_data, created_at, updated_at
            FROM flows
            {where}
            ORDER BY created_at DESC, rowid DESC
            """,
            params,
        ).fetchall()
        return [_flow_from_row(row) for row in rows]

    def add_favorite(self, profile_id: int, pose_id: str) -> None:
        """Mark a pose as favourite; repeated calls are no-ops."""
        with self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO favorites (profile_id, pose_id, created_at) VALUES (?, ?, ?)",
                (profile_id, pose_id, datetime.now(UTC).isoformat()),
            )

    def remove_favorite(self, profile_id: int, pose_id: str) -> bool:
        """Unmark a favourite pose."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM favorites WHERE profile_id = ? AND pose_id = ?",
                (profile_id, pose_id),
            )
        return cursor.rowcount > 0

    def favorite_pose_ids(self, profile_id: int) -> set[str]:
        """Return favourite pose ids for a profile."""
        rows = self._conn.execute("SELECT pose_id FROM favorites WHERE profile_id = ?", (profile_id,)).fetchall()
        return {str(row["pose_id"]) for row in rows}

    def add_comment(self, profile_id: int, pose_id: str, content: str) -> PoseComment:
        """Insert a comment on a pose."""
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO comments (pose_id, profile_id, content, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (pose_id, profile_id, content, now, now),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not add comment.")
        profile = self.get_profile(profile_id)
        return PoseComment(
            id=int(row_id),
            pose_id=pose_id,
            profile_id=profile_id,
            author_name=profile.name if profile is not None else None,
            content=content,
            created_at=now,
        )

    def list_comments(self, pose_id: str) -> list[PoseComment]:
        """Return comments on a pose, newest first."""
        rows = self._conn.execute(
            """
            SELECT c.id, c.pose_id, c.profile_id, p.name AS author_name, c.content, c.created_at
            FROM comments c
            LEFT JOIN profiles p ON p.id = c.profile_id
            WHERE c.pose_id = ?
            ORDER BY c.created_at DESC, c.id DESC
            """,
            (pose_id,),
        ).fetchall()
        return [
            PoseComment(
                id=int(row["id"]),
                pose_id=str(row["pose_id"]),
                profile_id=int(row["profile_id"]),
                author_name=str(row["author_name"]) if row["author_name"] is not None else None,
                content=str(row["content"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _flow_from_row(row: sqlite3.Row) -> SavedFlow:
    return SavedFlow(
        id=str(row["id"]),
        name=str(row["name"]),
        description=str(row["description"]) if row["description"] is not None else None,
        is_public=bool(row["is_public"]),
        owner_id=int(row["owner_id"]),
        steps_data=str(row["steps_data"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )
