"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg

from ..contracts import WorkflowPatch, WorkflowState
from ..errors import ConflictError, NotFoundError, TransientError
from .repository import WorkflowRepository, check_filters

# Driver and network failures surfaced to callers as TransientError.
STORAGE_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
        except STORAGE_ERRORS as e:
            raise TransientError(f"Could not connect to PostgreSQL: {e}") from e
        if not self._initialized:
            try:
                await self._ensure_schema(conn)
            except STORAGE_ERRORS as e:
                await conn.close()
                raise TransientError(f"Could not prepare PostgreSQL schema: {e}") from e
            except BaseException:
                await conn.close()
                raise
            self._initialized = True
        return conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = await self._connect()
        try:
            yield conn
        except STORAGE_ERRORS as e:
            raise TransientError(f"PostgreSQL operation failed: {e}") from e
        finally:
            await conn.close()

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_states (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                project_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                current_step TEXT NOT NULL,
                status TEXT NOT NULL,
                version INTEGER NOT NULL,
                document JSONB NOT NULL
            )
            """
        )

    @staticmethod
    def _to_state(document: Any) -> WorkflowState:
        if isinstance(document, str):
            return WorkflowState.model_validate_json(document)
        return WorkflowState.model_validate(document)

    # ------------------------------------------------------------------
    async def create(self, state: WorkflowState) -> WorkflowState:
        async with self._connection() as conn:
            try:
                await conn.execute(
                    """
                    INSERT INTO workflow_states
                        (id, kind, project_id, user_id, current_step, status, version, document)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
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
            except asyncpg.UniqueViolationError as e:
                raise ConflictError(f"Workflow {state.id} already exists") from e
        return state.model_copy(deep=True)

    async def find_by_id(self, workflow_id: str) -> Optional[WorkflowState]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM workflow_states WHERE id = $1", workflow_id
            )
        return self._to_state(row["document"]) if row else None

    async def update(
        self,
        workflow_id: str,
        patch: WorkflowPatch,
        expected_version: Optional[int] = None,
    ) -> WorkflowState:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM workflow_states WHERE id = $1", workflow_id
            )
            if not row:
                raise NotFoundError(f"Workflow {workflow_id} not found")
            current = self._to_state(row["document"])
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(
                    f"Workflow {workflow_id} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )

            updated = current.apply(patch)
            result = await conn.execute(
                """
                UPDATE workflow_states
                SET current_step = $1, status = $2, version = $3, document = $4
                WHERE id = $5 AND version = $6
                """,
                updated.current_step,
                updated.status.value,
                updated.version,
                updated.model_dump_json(),
                workflow_id,
                current.version,
            )

        if result.endswith(" 0"):
            raise ConflictError(f"Workflow {workflow_id} was modified concurrently")
        return updated

    async def find_by(self, **filters: str) -> list[WorkflowState]:
        wanted = check_filters(filters)
        query = "SELECT document FROM workflow_states"
        if wanted:
            clauses = [f"{key} = ${i}" for i, key in enumerate(wanted, start=1)]
            query += " WHERE " + " AND ".join(clauses)
        async with self._connection() as conn:
            rows = await conn.fetch(query, *wanted.values())
        return [self._to_state(r["document"]) for r in rows]

    async def list_workflows(self) -> list[WorkflowState]:
        return await self.find_by()
