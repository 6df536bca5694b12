"""
Process Supervisor
==================
Runs the external agent command as a child process and supervises it.
Returns structured invocation results (output, exit code, timing).

BOUNDARY RULES:
    - Supervisor ONLY runs and watches the agent.
    - Supervisor NEVER interprets verdicts — that is the Verdict Parser's job.
    - Supervisor NEVER fingerprints the target — the Controller does that,
      and only after the child has been reaped.

SUPERVISION:
    - Prompt is saved beside the transcript and fed to the child on stdin.
    - stdout + stderr stream into the transcript file.
    - The wait is ``Popen.wait(timeout=poll_interval)``: it returns as soon as
      the child exits, otherwise wakes once per tick to check the timeout and
      output growth and to report progress.
    - No output growth for ``stall_threshold`` seconds marks the call
      "stalled"; if the output tail is a yes/no permission prompt the child is
      killed and the outcome is "blocked". Blocked calls are never retried.

RETRIES:
    Each attempt starts a fresh process with a truncated transcript.
    Transient outcomes (timeout, nonzero exit, empty output) are retried
    up to ``retries`` attempts with a fixed delay between them.
"""
import os
import time
import logging
import subprocess
from typing import Callable, List, Optional

from checkfix.core.constants import (
    POLL_INTERVAL_SECONDS,
    RETRY_DELAY_SECONDS,
    TERMINATE_GRACE_SECONDS,
    STALL_TAIL_LINES,
    TIMEOUT_EXIT_CODE,
    DRY_RUN_OUTPUT,
)
from checkfix.models.invocation import InvocationResult
from checkfix.utils.stall_detection import is_blocked_on_prompt

logger = logging.getLogger(__name__)

# (phase, status, elapsed_seconds); status is "starting", "active", "stalled" or "finished"
ProgressCallback = Callable[[str, str, int], None]


def _file_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def read_output(path: str) -> str:
    """Read a transcript as text, tolerating partial UTF-8 sequences."""
    try:
        with open(path, "rb") as f:
            return f.read().decode("utf-8", errors="replace")
    except OSError:
        return ""


def read_tail(path: str, lines: int = STALL_TAIL_LINES) -> str:
    """Return the last ``lines`` lines of a transcript."""
    return "\n".join(read_output(path).splitlines()[-lines:])


def prompt_path_for(output_path: str) -> str:
    """check_3.txt → check_3.prompt"""
    return os.path.splitext(output_path)[0] + ".prompt"


def _log_progress(phase: str, status: str, elapsed: int) -> None:
    logger.debug("%s: %s [%ss]", phase, status, elapsed)


class ProcessSupervisor:
    """
    Supervises agent invocations for one session.

    Parameters
    ----------
    command : list[str]
        Agent argument vector; the prompt arrives on stdin.
    timeout_seconds : int
        Hard wall-clock limit per attempt.
    stall_threshold_seconds : int
        Seconds without output growth before the attempt counts as stalled.
    retries : int
        Maximum attempts per call.
    retry_delay : float
        Fixed pause between attempts.
    poll_interval : float
        Supervision tick.
    cwd : str | None
        Working directory of the child.
    dry_run : bool
        Never spawn anything; every call answers "[PASS] Dry run".
    on_progress : ProgressCallback | None
        Called on every tick.
    label : str
        Name used in log messages (the CLI name).
    """

    def __init__(
        self,
        command: List[str],
        timeout_seconds: int,
        stall_threshold_seconds: int,
        retries: int,
        retry_delay: float = RETRY_DELAY_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        cwd: Optional[str] = None,
        dry_run: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        label: str = "agent",
    ) -> None:
        self.command = list(command)
        self.timeout_seconds = timeout_seconds
        self.stall_threshold_seconds = stall_threshold_seconds
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval
        self.cwd = cwd
        self.dry_run = dry_run
        self.on_progress = on_progress or _log_progress
        self.label = label
        self._child: Optional[subprocess.Popen] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, prompt: str, output_path: str, phase: str = "") -> InvocationResult:
        """
        Run the agent with retries.

        Returns the first successful result, the blocked result as soon as
        a permission prompt is seen, or the last failed result once all
        attempts are used up.
        """
        if self.dry_run:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(DRY_RUN_OUTPUT + "\n")
            return InvocationResult(
                outcome="success", exit_code=0,
                output=DRY_RUN_OUTPUT + "\n", output_path=output_path,
            )

        result: Optional[InvocationResult] = None
        for attempt in range(1, self.retries + 1):
            result = self.run_once(prompt, output_path, phase)
            result.attempts = attempt

            if result.succeeded or result.outcome == "blocked":
                return result

            logger.warning(
                "%s: attempt %d/%d: %s", self.label, attempt, self.retries, result.reason
            )
            if attempt < self.retries:
                time.sleep(self.retry_delay)

        return result

    def run_once(self, prompt: str, output_path: str, phase: str = "") -> InvocationResult:
        """Run a single supervised attempt."""
        prompt_path = prompt_path_for(output_path)
        with open(prompt_path, "w", encoding="utf-8") as f:
            f.write(prompt)

        self.on_progress(phase, "starting", 0)
        start = time.monotonic()
        last_size = 0
        last_change = start
        stalled = False

        with open(prompt_path, "rb") as stdin, open(output_path, "wb") as out:
            try:
                child = subprocess.Popen(
                    self.command,
                    stdin=stdin,
                    stdout=out,
                    stderr=subprocess.STDOUT,
                    cwd=self.cwd,
                )
            except OSError as exc:
                logger.error("%s: cannot start %s: %s", self.label, self.command[0], exc)
                return InvocationResult(
                    outcome="nonzero_exit", exit_code=127,
                    output=str(exc), output_path=output_path,
                )
            self._child = child

            try:
                while True:
                    try:
                        exit_code = child.wait(timeout=self.poll_interval)
                        break
                    except subprocess.TimeoutExpired:
                        pass

                    now = time.monotonic()
                    elapsed = now - start

                    if elapsed >= self.timeout_seconds:
                        logger.warning(
                            "%s: %s timed out after %ds", self.label, phase or "call", self.timeout_seconds
                        )
                        self._stop(child)
                        return self._result(
                            "timeout", -1, output_path, elapsed, stalled
                        )

                    status = "active"
                    size = _file_size(output_path)
                    if size > last_size:
                        last_size, last_change = size, now
                    elif now - last_change >= self.stall_threshold_seconds:
                        if is_blocked_on_prompt(read_tail(output_path)):
                            logger.error("%s: blocked on permission prompt", self.label)
                            self._stop(child)
                            return self._result(
                                "blocked", -1, output_path, elapsed, True
                            )
                        if not stalled:
                            logger.warning(
                                "%s: no output for %ds", self.label, int(now - last_change)
                            )
                        stalled = True
                        status = "stalled"

                    self.on_progress(phase, status, int(elapsed))
            finally:
                if child.poll() is None:
                    self._stop(child)
                self._child = None
                self.on_progress(phase, "finished", int(time.monotonic() - start))

        elapsed = time.monotonic() - start
        if exit_code == 0 and _file_size(output_path) > 0:
            outcome = "success"
        elif exit_code == TIMEOUT_EXIT_CODE:
            outcome = "timeout"
        elif exit_code == 0:
            outcome = "empty_output"
        else:
            outcome = "nonzero_exit"
        return self._result(outcome, exit_code, output_path, elapsed, stalled)

    def terminate(self) -> None:
        """Kill the in-flight child, if any. Safe to call at any time."""
        child = self._child
        if child is not None and child.poll() is None:
            logger.info("Terminating %s (PID %d)", self.label, child.pid)
            self._stop(child)
        self._child = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _stop(child: subprocess.Popen) -> None:
        child.terminate()
        try:
            child.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            child.kill()
            child.wait()

    @staticmethod
    def _result(outcome, exit_code, output_path, elapsed, stalled) -> InvocationResult:
        return InvocationResult(
            outcome=outcome,
            exit_code=exit_code,
            output=read_output(output_path),
            output_path=output_path,
            elapsed_seconds=round(elapsed, 3),
            stalled=stalled,
        )
