"""
Workflow execution gateway service.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import StorageError
from shared.logging import set_user_context, set_workflow_context

from .adapters.upstream_client import UpstreamClient
from .auth.jwt_auth import CallerAuthenticator
from .domain.models import RequestMethod
from .domain.orchestrator import GatewayOrchestrator
from .domain.parameters import decode_body_parameters, decode_query_parameters
from .persistence.database import Database
from .persistence.stores import ExecutionLogStore, WorkflowStore
from .recording.recorder import ExecutionRecorder


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ExecutionLogPage(BaseModel):
    logs: List[Dict[str, Any]]
    pagination: Pagination


class ExecutionLogResponse(BaseModel):
    success: bool = True
    data: ExecutionLogPage


class GatewayService(BaseService):
    """Workflow gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        database: Optional[Database] = None,
        upstream_client: Optional[UpstreamClient] = None,
    ):
        super().__init__("workflow_gateway", 3001, config)

        self.database = database or Database(
            self.config.postgres_dsn,
            min_size=self.config.db_pool_min_size,
            max_size=self.config.db_pool_max_size,
            command_timeout=self.config.db_command_timeout,
            retry_attempts=self.config.storage_retry_attempts,
            retry_base_delay=self.config.storage_retry_base_delay,
        )
        self.workflow_store = WorkflowStore(self.database)
        self.log_store = ExecutionLogStore(self.database)
        self.upstream_client = upstream_client or UpstreamClient(
            self.config.upstream_base_url,
            timeout=self.config.upstream_timeout_seconds,
            metrics=self.metrics,
        )
        self.recorder = ExecutionRecorder(
            self.log_store,
            concurrency=self.config.recorder_concurrency,
            metrics=self.metrics,
        )
        self.orchestrator = GatewayOrchestrator(
            self.workflow_store,
            self.upstream_client,
            self.recorder,
            reject_inactive_workflows=self.config.reject_inactive_workflows,
            metrics=self.metrics,
        )
        self.authenticator = CallerAuthenticator(self.config.jwt_secret, self.config.jwt_algorithm)

        self._setup_execute_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    async def on_startup(self) -> None:
        try:
            await self.database.connect()
        except StorageError as e:
            # Requests reconnect lazily; health reports the outage meanwhile
            self.logger.error("Database unavailable at startup", error=e.message)

    async def on_shutdown(self) -> None:
        await self.recorder.drain(timeout=self.config.recorder_drain_timeout)
        await self.upstream_client.close()
        await self.database.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"database": "ok" if await self.database.health_check() else "error"}

    def _setup_execute_routes(self):
        """Set up the execute and execution-log routes."""
        router = APIRouter(prefix=f"{self.config.api_prefix}/execute", tags=["execute"])

        @router.get("/logs/{workflow_id}", response_model=ExecutionLogResponse)
        async def get_execution_logs(
            workflow_id: str,
            request: Request,
            page: int = Query(1, ge=1),
            limit: int = Query(20, ge=1, le=100),
        ):
            """Paginated execution log of a workflow owned by the caller."""
            identity = self.authenticator.authenticate(request)
            set_user_context(str(identity.user_id))

            if not await self.workflow_store.is_owned_by(workflow_id, identity.user_id):
                return JSONResponse(
                    status_code=404,
                    content={"success": False, "message": "Workflow not found or access denied"},
                )

            logs, total = await self.log_store.list_for_workflow(
                workflow_id, identity.user_id, page=page, limit=limit
            )
            pages = (total + limit - 1) // limit
            return ExecutionLogResponse(
                data=ExecutionLogPage(
                    logs=logs,
                    pagination=Pagination(page=page, limit=limit, total=total, pages=pages),
                )
            )

        @router.api_route("/{workflow_id}", methods=["GET", "POST"])
        async def execute_workflow(workflow_id: str, request: Request):
            """Run the configured workflow; GET reads the query string, POST the JSON body."""
            set_workflow_context(workflow_id)
            method = RequestMethod(request.method)
            if method is RequestMethod.GET:
                parameters = decode_query_parameters(request.query_params.multi_items())
            else:
                parameters = decode_body_parameters(await request.body())

            caller = self.authenticator.identify(request)
            if caller is not None:
                set_user_context(str(caller.user_id))

            result = await self.orchestrator.execute(workflow_id, method, parameters)
            return JSONResponse(status_code=result.status_code, content=result.body)

        self.app.include_router(router)


def create_app():
    """Create FastAPI application."""
    service = GatewayService()
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
