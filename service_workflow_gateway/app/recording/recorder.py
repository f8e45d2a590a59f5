"""
Execution audit recording.
"""

import asyncio
from typing import Optional, Set

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..domain.models import ExecutionRecord
from ..persistence.stores import ExecutionLogStore


class ExecutionRecorder:
    """Persists execution records in the background.

    Writes run as tasks bounded by a semaphore so a burst of invocations
    cannot exhaust the storage pool. Failures are logged and counted, never
    raised: an audit write must not change the caller's response. ``drain``
    waits for in-flight writes and is called during graceful shutdown.
    """

    def __init__(
        self,
        log_store: ExecutionLogStore,
        *,
        concurrency: int = 10,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.log_store = log_store
        self.metrics = metrics
        self.logger = get_logger("workflow_gateway.recorder")
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of writes not yet finished."""
        return len(self._pending)

    async def record(self, record: ExecutionRecord) -> bool:
        """Write ``record`` now; returns whether it was persisted."""
        async with self._semaphore:
            try:
                await self.log_store.insert(record)
            except Exception as e:
                self.logger.error(
                    "Failed to record workflow execution",
                    workflow_id=record.workflow_id,
                    status=record.status.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if self.metrics:
                    self.metrics.increment_counter("audit_write_failures_total")
                return False

        self.logger.debug(
            "Workflow execution recorded",
            workflow_id=record.workflow_id,
            status=record.status.value,
            execution_time_ms=record.execution_time_ms,
        )
        return True

    def submit(self, record: ExecutionRecord) -> asyncio.Task:
        """Schedule a background write without waiting for it."""
        task = asyncio.create_task(self.record(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending writes, giving up after ``timeout`` seconds."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._pending:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(set(self._pending), timeout=remaining)

        if self._pending:
            self.logger.warning("Execution records still pending after drain timeout", pending=len(self._pending))
        else:
            self.logger.info("Execution recorder drained")
