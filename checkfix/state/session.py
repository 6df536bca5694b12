"""
Session State
=============
Everything one checkfix run knows about itself, owned by the Controller
and mutated only through its state-machine steps.

Invariants:
    - fingerprints only grows; a repeat is a cycle
    - consecutive_passes is reset by a content-changing fix and only
      incremented by a clean verdict
    - iteration is monotonic
"""
import os
import time
import tempfile
from dataclasses import dataclass, field
from typing import List

from checkfix.core import config
from checkfix.core.errors import ConvergenceFailure
from checkfix.models.iteration_snapshot import IterationSnapshot
from checkfix.models.session_config import SessionConfig
from checkfix.utils.failure_reasons import CYCLE_DETECTED


def create_log_dir(identity: str) -> str:
    """Fresh, uniquely named log directory for one session under TMP_DIR."""
    return tempfile.mkdtemp(prefix=f"checkfix-{identity}-", dir=config.TMP_DIR)


@dataclass
class Session:
    identity: str
    config: SessionConfig
    log_dir: str = ""
    iteration: int = 0
    consecutive_passes: int = 0
    phase: str = "pending"
    pending_report: str = ""
    fingerprints: List[str] = field(default_factory=list)
    snapshots: List[IterationSnapshot] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    iteration_started: float = field(default_factory=time.monotonic)

    @property
    def converged(self) -> bool:
        return self.consecutive_passes >= self.config.consecutive_passes

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def log_path(self, phase: str) -> str:
        """Transcript path for a phase of the current iteration, e.g. fix_3.txt."""
        return os.path.join(self.log_dir, f"{phase}_{self.iteration}.txt")

    def record_fingerprint(self, digest: str) -> None:
        """Append to history, failing if the state was already seen."""
        if digest in self.fingerprints:
            index = self.fingerprints.index(digest)
            where = "initial state" if index == 0 else f"iteration {index}"
            raise ConvergenceFailure(
                f"cycle detected: state matches {where}", code=CYCLE_DETECTED
            )
        self.fingerprints.append(digest)

    def record_pass(self) -> int:
        self.consecutive_passes += 1
        return self.consecutive_passes

    def reset_passes(self) -> None:
        self.consecutive_passes = 0
