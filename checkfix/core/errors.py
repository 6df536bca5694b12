"""
Errors
======
Exception hierarchy shared by every checkfix layer.

Fatal controller conditions carry a machine-readable ``code`` (see
``checkfix.utils.failure_reasons``) next to the human-readable reason.
"""
from typing import Optional


class CheckfixError(Exception):
    """Base class for all expected checkfix failures."""

    code = "ERROR"

    def __init__(self, reason: str, code: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if code:
            self.code = code


class ConfigError(CheckfixError):
    code = "CONFIG_ERROR"


class TargetError(CheckfixError):
    code = "TARGET_ERROR"


class AgentNotFoundError(CheckfixError):
    code = "AGENT_NOT_FOUND"


class LockError(CheckfixError):
    code = "LOCK_FAILED"


class AlreadyRunningError(LockError):
    code = "ALREADY_RUNNING"

    def __init__(self, pid: int) -> None:
        super().__init__(f"already running (PID {pid})")
        self.pid = pid


class ConvergenceFailure(CheckfixError):
    """A fatal condition inside the check/fix loop. Never retried."""

    code = "CONVERGENCE_FAILURE"
