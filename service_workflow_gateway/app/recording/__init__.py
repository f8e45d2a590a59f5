from .recorder import ExecutionRecorder

__all__ = ["ExecutionRecorder"]
