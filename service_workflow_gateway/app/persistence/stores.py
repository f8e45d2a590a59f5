"""
Read access to workflow configurations and the execution audit log.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from shared.logging import get_logger

from .database import Database
from ..domain.models import ExecutionRecord, WorkflowConfig


class WorkflowStore:
    """Read-only view of the ``workflows`` table used by the gateway."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = get_logger("workflow_gateway.workflow_store")

    async def get_by_workflow_id(self, workflow_id: str) -> Optional[WorkflowConfig]:
        """Load the gateway-eligible configuration for ``workflow_id``.

        Execution is not scoped by owner, so the lookup is by workflow id
        alone; the oldest row wins if several owners registered the same id.
        """
        row = await self.database.fetchrow(
            """
            SELECT id, user_id, workflow_id, workflow_name, token, parameters,
                   method, is_async, is_active
            FROM workflows
            WHERE workflow_id = $1
            ORDER BY id ASC
            LIMIT 1
            """,
            workflow_id,
        )
        if row is None:
            return None
        return WorkflowConfig.from_row(row)

    async def is_owned_by(self, workflow_id: str, owner_id: int) -> bool:
        row = await self.database.fetchrow(
            "SELECT id FROM workflows WHERE workflow_id = $1 AND user_id = $2",
            workflow_id,
            owner_id,
        )
        return row is not None


class ExecutionLogStore:
    """Writes and pages through ``workflow_logs`` rows."""

    JSON_COLUMNS = ("request_params", "response_data")

    def __init__(self, database: Database):
        self.database = database
        self.logger = get_logger("workflow_gateway.execution_log_store")

    async def insert(self, record: ExecutionRecord) -> None:
        await self.database.execute(
            """
            INSERT INTO workflow_logs (
                user_id, workflow_id, request_params, response_data,
                execution_time, status, error_message, request_method
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            record.owner_id,
            record.workflow_id,
            record.serialized_parameters(),
            record.serialized_response(),
            record.execution_time_ms,
            record.status.value,
            record.error_message,
            record.request_method.value,
        )

    async def list_for_workflow(
        self, workflow_id: str, owner_id: int, *, page: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of logs (newest first) and the total count."""
        offset = (page - 1) * limit
        rows = await self.database.fetch(
            """
            SELECT id, user_id, workflow_id, request_params, response_data,
                   execution_time, status, error_message, request_method, created_at
            FROM workflow_logs
            WHERE workflow_id = $1 AND user_id = $2
            ORDER BY created_at DESC, id DESC
            LIMIT $3 OFFSET $4
            """,
            workflow_id,
            owner_id,
            limit,
            offset,
        )
        total = await self.database.fetchval(
            "SELECT COUNT(*) FROM workflow_logs WHERE workflow_id = $1 AND user_id = $2",
            workflow_id,
            owner_id,
        )
        return [self._row_to_dict(row) for row in rows], int(total or 0)

    def _row_to_dict(self, row: Any) -> Dict[str, Any]:
        """Convert a log row, decoding the JSON text columns where possible."""
        entry = dict(row)
        for column in self.JSON_COLUMNS:
            value = entry.get(column)
            if isinstance(value, str):
                try:
                    entry[column] = json.loads(value)
                except ValueError:
                    self.logger.warning("Failed to decode log column", column=column, log_id=entry.get("id"))
        created_at = entry.get("created_at")
        if created_at is not None and hasattr(created_at, "isoformat"):
            entry["created_at"] = created_at.isoformat()
        return entry
