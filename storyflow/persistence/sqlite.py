"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from ..contracts import WorkflowPatch, WorkflowState
from ..errors import ConflictError, NotFoundError, TransientError
from .repository import WorkflowRepository, check_filters


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflow state using SQLite.

    The whole state document is stored as JSON next to a handful of
    columns used for equality filters and the version check.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_states (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                project_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                current_step TEXT NOT NULL,
                status TEXT NOT NULL,
                version INTEGER NOT NULL,
                document TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(query, params)
                self._conn.commit()
            except sqlite3.IntegrityError:
                self._conn.rollback()
                raise
            except sqlite3.DatabaseError as e:
                self._conn.rollback()
                raise TransientError(f"SQLite operation failed: {e}") from e
            return cur.rowcount

    def _query(self, query: str, params: tuple, fetch: str) -> Any:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(query, params)
                return cur.fetchone() if fetch == "one" else cur.fetchall()
            except sqlite3.DatabaseError as e:
                raise TransientError(f"SQLite query failed: {e}") from e

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        return self._query(query, params, "one")

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        return self._query(query, params, "all")

    @staticmethod
    def _to_state(row: sqlite3.Row) -> WorkflowState:
        return WorkflowState.model_validate_json(row["document"])

    # ------------------------------------------------------------------
    # Repository API
    async def create(self, state: WorkflowState) -> WorkflowState:
        try:
            await asyncio.to_thread(
                self._execute,
                """
                INSERT INTO workflow_states
                    (id, kind, project_id, user_id, current_step, status, version, document)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                state.id,
                state.kind.value,
                state.project_id,
                state.user_id,
                state.current_step,
                state.status.value,
                state.version,
                state.model_dump_json(),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Workflow {state.id} already exists") from e
        return state.model_copy(deep=True)

    async def find_by_id(self, workflow_id: str) -> Optional[WorkflowState]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT document FROM workflow_states WHERE id = ?",
            workflow_id,
        )
        return self._to_state(row) if row else None

    async def update(
        self,
        workflow_id: str,
        patch: WorkflowPatch,
        expected_version: Optional[int] = None,
    ) -> WorkflowState:
        current = await self.find_by_id(workflow_id)
        if current is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        if expected_version is not None and current.version != expected_version:
            raise ConflictError(
                f"Workflow {workflow_id} was modified concurrently "
                f"(expected version {expected_version}, found {current.version})"
            )

        updated = current.apply(patch)
        changed = await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflow_states
            SET current_step = ?, status = ?, version = ?, document = ?
            WHERE id = ? AND version = ?
            """,
            updated.current_step,
            updated.status.value,
            updated.version,
            updated.model_dump_json(),
            workflow_id,
            current.version,
        )
        if changed == 0:
            raise ConflictError(f"Workflow {workflow_id} was modified concurrently")
        return updated

    async def find_by(self, **filters: str) -> list[WorkflowState]:
        wanted = check_filters(filters)
        query = "SELECT document FROM workflow_states"
        if wanted:
            query += " WHERE " + " AND ".join(f"{key} = ?" for key in wanted)
        rows = await asyncio.to_thread(self._fetchall, query, *wanted.values())
        return [self._to_state(r) for r in rows]

    async def list_workflows(self) -> list[WorkflowState]:
        return await self.find_by()
