"""
Storage access for the Workflow Gateway.
"""

from .database import Database, is_transient_storage_error
from .stores import ExecutionLogStore, WorkflowStore

__all__ = [
    "Database",
    "ExecutionLogStore",
    "WorkflowStore",
    "is_transient_storage_error",
]
