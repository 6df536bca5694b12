"""
Invocation Result Model
=======================
Pydantic model for one supervised agent call (all attempts included).

Fields:
    outcome          — success / timeout / nonzero_exit / empty_output / blocked
    exit_code        — exit code of the last attempt (-1 if killed or never started)
    output           — combined stdout + stderr of the last attempt
    output_path      — transcript file on disk
    elapsed_seconds  — wall clock time of the last attempt
    attempts         — number of attempts made
    stalled          — True if the last attempt went quiet past the stall threshold
"""
from typing import Literal

from pydantic import BaseModel

InvocationOutcome = Literal["success", "timeout", "nonzero_exit", "empty_output", "blocked"]


class InvocationResult(BaseModel):
    outcome: InvocationOutcome
    exit_code: int = -1
    output: str = ""
    output_path: str = ""
    elapsed_seconds: float = 0.0
    attempts: int = 1
    stalled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome == "success"

    @property
    def reason(self) -> str:
        """Short human-readable failure reason for diagnostics."""
        if self.outcome == "nonzero_exit":
            return f"exit {self.exit_code}"
        return self.outcome.replace("_", " ")
