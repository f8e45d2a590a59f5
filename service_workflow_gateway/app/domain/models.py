"""
Domain models for workflow configurations and execution records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class RequestMethod(str, Enum):
    """HTTP methods accepted by the execute endpoint."""

    GET = "GET"
    POST = "POST"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["RequestMethod"] = None) -> "RequestMethod":
        """Parse a stored method value, falling back to ``default`` (POST)."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return default or cls.POST


class ExecutionStatus(str, Enum):
    """Outcome stored on every execution record."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class WorkflowConfig:
    """A stored binding of an upstream workflow to a credential and defaults."""

    workflow_id: str
    owner_id: int
    display_name: str = ""
    raw_credential: Optional[str] = None
    default_parameters_text: Optional[str] = None
    preferred_method: RequestMethod = RequestMethod.POST
    is_async_upstream: bool = False
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Any) -> "WorkflowConfig":
        """Build a config from a ``workflows`` table row."""
        parameters = row["parameters"]
        if parameters is not None and not isinstance(parameters, str):
            # JSON/JSONB columns may arrive already decoded
            parameters = json.dumps(parameters)

        return cls(
            workflow_id=str(row["workflow_id"]),
            owner_id=row["user_id"],
            display_name=row["workflow_name"] or "",
            raw_credential=row["token"],
            default_parameters_text=parameters,
            preferred_method=RequestMethod.parse(row["method"]),
            is_async_upstream=bool(row["is_async"]),
            is_active=True if row["is_active"] is None else bool(row["is_active"]),
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """One audit row per gateway invocation attempt."""

    owner_id: int
    workflow_id: str
    request_method: RequestMethod
    request_parameters: Dict[str, Any] = field(default_factory=dict)
    response_data: Optional[Dict[str, Any]] = None
    execution_time_ms: int = 0
    status: ExecutionStatus = ExecutionStatus.SUCCESS
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.execution_time_ms < 0:
            raise ValueError("execution_time_ms must be >= 0")

    def serialized_parameters(self) -> str:
        return json.dumps(self.request_parameters, ensure_ascii=False)

    def serialized_response(self) -> Optional[str]:
        if self.response_data is None:
            return None
        return json.dumps(self.response_data, ensure_ascii=False, default=str)
