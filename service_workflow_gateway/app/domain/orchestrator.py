"""
Per-request execution pipeline of the workflow gateway.

An invocation moves through

    RESOLVING -> MERGING -> AUTHORIZING -> INVOKING -> TRANSFORMING -> RECORDING -> DONE

and falls into FAILED from resolving, authorizing or invoking. Every
outcome except an unknown workflow produces exactly one execution record,
written in the background by the ``ExecutionRecorder``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from shared.errors import (
    ConfigurationError,
    UpstreamError,
    UpstreamTimeoutError,
    WorkflowNotFoundError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .credentials import normalize_credential
from .models import ExecutionRecord, ExecutionStatus, RequestMethod, WorkflowConfig
from .parameters import ParameterSet, merge_parameters, parse_default_parameters, to_plain
from .transformer import transform_response
from ..adapters.upstream_client import UpstreamClient
from ..persistence.stores import WorkflowStore
from ..recording.recorder import ExecutionRecorder

UPSTREAM_FAILURE_PREFIX = "Upstream API call failed"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class GatewayState(str, Enum):
    RESOLVING = "resolving"
    MERGING = "merging"
    AUTHORIZING = "authorizing"
    INVOKING = "invoking"
    TRANSFORMING = "transforming"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GatewayResult:
    """Caller-facing outcome of one invocation."""

    status_code: int
    body: Dict[str, Any]
    state: GatewayState
    failed_in: Optional[GatewayState] = None
    record: Optional[ExecutionRecord] = None


@dataclass
class _Failure:
    status_code: int
    body: Dict[str, Any]
    status: ExecutionStatus
    error_message: str


class GatewayOrchestrator:
    """Sequences lookup, merge, credential, upstream call, transform and audit."""

    def __init__(
        self,
        workflow_store: WorkflowStore,
        upstream_client: UpstreamClient,
        recorder: ExecutionRecorder,
        *,
        reject_inactive_workflows: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.workflow_store = workflow_store
        self.upstream_client = upstream_client
        self.recorder = recorder
        self.reject_inactive_workflows = reject_inactive_workflows
        self.metrics = metrics
        self.logger = get_logger("workflow_gateway.orchestrator")

    async def execute(
        self,
        workflow_id: str,
        method: RequestMethod,
        caller_parameters: ParameterSet,
    ) -> GatewayResult:
        """Run one invocation of ``workflow_id`` with the caller's parameters."""
        started = time.perf_counter()
        state = GatewayState.RESOLVING
        config: Optional[WorkflowConfig] = None
        request_parameters: Dict[str, Any] = to_plain(caller_parameters)
        envelope: Optional[Dict[str, Any]] = None
        failure: Optional[_Failure] = None

        try:
            config = await self._resolve(workflow_id)
            self.logger.info(
                "Executing workflow",
                workflow_id=workflow_id,
                request_method=method.value,
                configured_method=config.preferred_method.value,
                owner_id=config.owner_id,
                workflow_name=config.display_name,
            )

            state = GatewayState.MERGING
            defaults = parse_default_parameters(config.default_parameters_text, workflow_id)
            request_parameters = to_plain(merge_parameters(defaults, caller_parameters))

            state = GatewayState.AUTHORIZING
            credential = normalize_credential(config.raw_credential)

            state = GatewayState.INVOKING
            raw_response = await self.upstream_client.run_workflow(
                credential,
                config.workflow_id,
                request_parameters,
                is_async=config.is_async_upstream,
            )

            state = GatewayState.TRANSFORMING
            envelope = transform_response(raw_response)

        except WorkflowNotFoundError as exc:
            self.logger.info("Workflow configuration not found", workflow_id=workflow_id)
            self._count("not_found")
            return GatewayResult(
                status_code=exc.status_code,
                body={"success": False, "message": exc.message},
                state=GatewayState.FAILED,
                failed_in=state,
            )
        except ConfigurationError as exc:
            failure = _Failure(
                status_code=exc.status_code,
                body={"success": False, "message": "Workflow configuration error", "error": exc.message},
                status=ExecutionStatus.ERROR,
                error_message=exc.message,
            )
        except UpstreamError as exc:
            failure = self._upstream_failure(exc)
        except Exception as exc:
            self.logger.error(
                "Workflow execution failed",
                workflow_id=workflow_id,
                state=state.value,
                error=str(exc),
                exc_info=exc,
            )
            failure = _Failure(
                status_code=500,
                body={"success": False, "message": INTERNAL_ERROR_MESSAGE, "error": str(exc)},
                status=ExecutionStatus.ERROR,
                error_message=str(exc) or type(exc).__name__,
            )

        failed_in = state if failure else None
        if failure:
            self.logger.warning(
                "Workflow execution failed",
                workflow_id=workflow_id,
                state=state.value,
                status_code=failure.status_code,
                error=failure.error_message,
            )

        state = GatewayState.RECORDING
        record = ExecutionRecord(
            owner_id=config.owner_id if config else 0,
            workflow_id=workflow_id,
            request_method=method,
            request_parameters=request_parameters,
            response_data=envelope,
            execution_time_ms=int(round((time.perf_counter() - started) * 1000)),
            status=failure.status if failure else ExecutionStatus.SUCCESS,
            error_message=failure.error_message if failure else None,
        )
        self.recorder.submit(record)
        self._count(record.status.value)

        if failure:
            return GatewayResult(failure.status_code, failure.body, GatewayState.FAILED, failed_in, record)
        return GatewayResult(200, envelope, GatewayState.DONE, None, record)

    async def _resolve(self, workflow_id: str) -> WorkflowConfig:
        config = await self.workflow_store.get_by_workflow_id(workflow_id)
        if config is None:
            raise WorkflowNotFoundError(workflow_id)
        if self.reject_inactive_workflows and not config.is_active:
            self.logger.info("Refusing inactive workflow", workflow_id=workflow_id)
            raise WorkflowNotFoundError(workflow_id)
        return config

    def _upstream_failure(self, exc: UpstreamError) -> _Failure:
        detail = None
        if isinstance(exc.body, dict):
            detail = exc.body.get("message") or exc.body.get("msg")
        body: Dict[str, Any] = {
            "success": False,
            "message": f"{UPSTREAM_FAILURE_PREFIX}: {detail or exc.message}",
        }
        if exc.body is not None:
            body["error"] = exc.body

        timed_out = isinstance(exc, UpstreamTimeoutError)
        return _Failure(
            status_code=exc.status_code,
            body=body,
            status=ExecutionStatus.TIMEOUT if timed_out else ExecutionStatus.ERROR,
            error_message=exc.message,
        )

    def _count(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("workflow_executions_total", status=outcome)
