"""
Run Result Model
================
Terminal report of a checkfix session.

status is machine-distinguishable ("done" / "failed" / "interrupted");
reason is the human-readable message for anything but "done".
"""
from typing import List, Literal, Optional

from pydantic import BaseModel

from checkfix.core.constants import EXIT_OK, EXIT_FAILURE, EXIT_INTERRUPTED
from .iteration_snapshot import IterationSnapshot

RunStatus = Literal["done", "failed", "interrupted"]


class RunResult(BaseModel):
    status: RunStatus
    reason: str = ""
    failure_code: str = ""
    identity: str = ""
    iterations: int = 0
    passes: int = 0
    elapsed_seconds: float = 0.0
    log_dir: Optional[str] = None
    fingerprints: List[str] = []
    snapshots: List[IterationSnapshot] = []

    @property
    def succeeded(self) -> bool:
        return self.status == "done"

    @property
    def exit_code(self) -> int:
        if self.status == "done":
            return EXIT_OK
        if self.status == "interrupted":
            return EXIT_INTERRUPTED
        return EXIT_FAILURE
