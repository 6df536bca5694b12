"""
Convergence Controller
======================
The central state machine of checkfix.
Drives the Check → Fix → Verify loop until the target stabilizes or a
safety limit trips.

States:
    CHECK   — ask the agent for a review; clean verdicts count as passes
    FIX     — hand the issue report to the agent, then re-fingerprint
    VERIFY  — second opinion when a fix left the target byte-identical
    DONE    — enough consecutive clean checks
    FAILED  — any fatal condition (raised as ConvergenceFailure)

Guardrails:
    - Iteration budget (max_iterations)
    - Runaway change ceiling (max_change_lines per fix)
    - Oscillation detection via fingerprint history
    - Blocked fixes and permission prompts abort immediately
    - A no-op fix whose finding does not reproduce is a false positive,
      counted as a pass; one whose finding persists is fatal

Resource discipline:
    The session lock and the agent child process are held under
    with / finally, so interrupt, fatal error and success all release the
    lock and kill the child. The log directory is created only once the
    lock is held and is unique per session. Logs are purged only on success.
"""
import os
import time
import shutil
import logging
from enum import Enum
from typing import Optional

from checkfix.core.errors import ConvergenceFailure, LockError
from checkfix.executor.process_supervisor import ProcessSupervisor
from checkfix.llm.prompts import check_prompt, fix_prompt
from checkfix.models.invocation import InvocationResult
from checkfix.models.iteration_snapshot import IterationSnapshot
from checkfix.models.run_result import RunResult
from checkfix.models.session_config import SessionConfig
from checkfix.parser.verdict_parser import classify_check, classify_fix, extract_findings
from checkfix.services.results_writer import ResultsWriter
from checkfix.services.session_lock import SessionLock
from checkfix.services.targets import Target
from checkfix.state.session import Session, create_log_dir
from checkfix.utils.failure_reasons import (
    AGENT_BLOCKED,
    CHECK_FAILED,
    DID_NOT_STABILIZE,
    FIX_BLOCKED,
    FIX_FAILED,
    FIX_TOO_LARGE,
    INTERRUPTED,
    NO_CHANGE_ISSUE_PERSISTS,
    is_rerunnable,
)
from checkfix.utils.fingerprint import fingerprint
from checkfix.utils.logging_config import attach_session_log, detach_session_log

logger = logging.getLogger(__name__)

# Findings shown in the log per failed check
_MAX_FINDINGS_SHOWN = 10


class Phase(str, Enum):
    CHECK = "check"
    FIX = "fix"
    VERIFY = "verify"
    DONE = "done"
    FAILED = "failed"


def _show_issues(report: str) -> None:
    """Log the file:line findings of a report, or its first lines."""
    if not report:
        return
    findings = extract_findings(report)
    if not findings:
        for line in report.splitlines()[:5]:
            logger.info("  %s", line)
        return
    for line in findings[:_MAX_FINDINGS_SHOWN]:
        logger.info("  %s", line)
    if len(findings) > _MAX_FINDINGS_SHOWN:
        logger.info("  ...and %d more", len(findings) - _MAX_FINDINGS_SHOWN)


class ConvergenceController:
    """
    Runs one checkfix session against a target.

    Parameters
    ----------
    target : Target
        What to review and how to observe it.
    supervisor : ProcessSupervisor
        Runs the agent.
    config : SessionConfig
        Loop limits.
    lock : SessionLock | None
        Defaults to the file-backed lock.
    log_dir : str | None
        Session log directory; defaults to <tmp>/checkfix-<identity>-<pid>.
    results_path : str | None
        Also write the final RunResult JSON here.
    """

    def __init__(
        self,
        target: Target,
        supervisor: ProcessSupervisor,
        config: SessionConfig,
        lock: Optional[SessionLock] = None,
        log_dir: Optional[str] = None,
        results_path: Optional[str] = None,
    ) -> None:
        self.target = target
        self.supervisor = supervisor
        self.config = config
        self.lock = lock or SessionLock()
        self.log_dir = log_dir
        self.results_path = results_path
        self.session: Optional[Session] = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def run(self) -> RunResult:
        """Execute the full session and return its terminal report."""
        session = Session(identity=self.target.identity, config=self.config)
        self.session = session
        logger.info(
            "checkfix: max=%d passes=%d%s | %s",
            self.config.max_iterations,
            self.config.consecutive_passes,
            " dry-run" if self.config.dry_run else "",
            self.target.summary(),
        )

        try:
            with self.lock.held(session.identity):
                result = self._run_session(session)
        except LockError as exc:
            # Nothing of the session exists yet: no log directory, no agent
            session.phase = Phase.FAILED.value
            result = self._result(session, "failed", exc.reason, exc.code)
            self._report(result)

        if self.results_path:
            ResultsWriter.write_results(result, self.results_path)
        return result

    def _run_session(self, session: Session) -> RunResult:
        """Everything that happens while the lock is held."""
        session.log_dir = self._create_log_dir(session.identity)
        handler = attach_session_log(session.log_dir)
        try:
            result = self._drive(session)
            self._report(result)
        finally:
            detach_session_log(handler)

        if result.succeeded:
            shutil.rmtree(session.log_dir, ignore_errors=True)
        else:
            ResultsWriter.write_results(result, os.path.join(session.log_dir, "summary.json"))
        return result

    def _create_log_dir(self, identity: str) -> str:
        if self.log_dir:
            os.makedirs(self.log_dir, exist_ok=True)
            return self.log_dir
        return create_log_dir(identity)

    def _drive(self, session: Session) -> RunResult:
        try:
            try:
                self._converge(session)
            finally:
                self.supervisor.terminate()
        except ConvergenceFailure as exc:
            session.phase = Phase.FAILED.value
            if session.snapshots and not session.snapshots[-1].outcome:
                session.snapshots[-1].outcome = "failed"
                session.snapshots[-1].summary = exc.reason
            return self._result(session, "failed", exc.reason, exc.code)
        except KeyboardInterrupt:
            session.phase = Phase.FAILED.value
            logger.warning("checkfix: interrupted")
            return self._result(session, "interrupted", "interrupted", INTERRUPTED)

        session.phase = Phase.DONE.value
        return self._result(session, "done")


    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _converge(self, session: Session) -> None:
        session.record_fingerprint(fingerprint(self.target))
        session.iteration = 1
        phase = Phase.CHECK

        handlers = {
            Phase.CHECK: self._check,
            Phase.FIX: self._fix,
            Phase.VERIFY: self._verify,
        }
        while phase is not Phase.DONE:
            session.phase = phase.value
            phase = handlers[phase](session)
            self._touch_snapshot(session)

    def _check(self, session: Session) -> Phase:
        if session.iteration > self.config.max_iterations:
            raise ConvergenceFailure(
                f"max iterations ({self.config.max_iterations}): check/fix cycle did not stabilize",
                code=DID_NOT_STABILIZE,
            )

        snapshot = self._begin_iteration(session)
        logger.info("Iteration %d/%d", session.iteration, self.config.max_iterations)

        result = self._invoke(
            check_prompt(self.target.describe(), self.target.repo_wide), session, Phase.CHECK
        )
        if not result.succeeded:
            raise ConvergenceFailure(
                f"check failed: CLI error after {result.attempts} attempts", code=CHECK_FAILED
            )

        verdict = classify_check(result.output)
        snapshot.check_verdict = verdict.kind

        if verdict.is_clean:
            logger.info("check: passed [%ds]", result.elapsed_seconds)
            passes = session.record_pass()
            logger.info("progress: %d/%d consecutive passes", passes, self.config.consecutive_passes)
            snapshot.outcome = "passed"
            snapshot.summary = "Check passed."
            return self._after_pass(session)

        logger.warning("check: failed [%ds]", result.elapsed_seconds)
        _show_issues(verdict.detail or result.output)
        session.pending_report = result.output
        return Phase.FIX

    def _fix(self, session: Session) -> Phase:
        snapshot = session.snapshots[-1]
        start = time.monotonic()
        before = fingerprint(self.target)
        size_before = self.target.measure()
        snapshot.fingerprint_before = before

        result = self._invoke(
            fix_prompt(session.pending_report, self.target.describe(), self.target.repo_wide),
            session,
            Phase.FIX,
        )
        if not result.succeeded:
            raise ConvergenceFailure("fix failed: CLI error", code=FIX_FAILED)

        verdict = classify_fix(result.output)
        snapshot.fix_verdict = verdict.kind
        if verdict.is_blocked:
            raise ConvergenceFailure(
                f"fix blocked: {verdict.detail or 'no reason given'}", code=FIX_BLOCKED
            )

        # The supervisor has reaped the child, so the target is quiescent
        after = fingerprint(self.target)
        snapshot.fingerprint_after = after

        if after == before:
            if verdict.kind == "fixed" and verdict.detail:
                logger.warning("fix: CLI claimed: %s", verdict.detail)
            logger.warning("fix: no changes, re-verifying...")
            return Phase.VERIFY

        change = abs(self.target.measure() - size_before)
        snapshot.change_size = change
        if change > self.config.max_change_lines:
            raise ConvergenceFailure(
                f"fix too large: exceeds {self.config.max_change_lines} line threshold",
                code=FIX_TOO_LARGE,
            )

        session.record_fingerprint(after)
        session.reset_passes()
        logger.info(
            "fix: %s [%ds]",
            verdict.detail if verdict.kind == "fixed" and verdict.detail else "completed",
            time.monotonic() - start,
        )
        snapshot.outcome = "fixed"
        snapshot.summary = f"Fix changed {change} line(s)."
        snapshot.consecutive_passes = session.consecutive_passes
        session.iteration += 1
        return Phase.CHECK

    def _verify(self, session: Session) -> Phase:
        snapshot = session.snapshots[-1]
        result = self._invoke(
            check_prompt(self.target.describe(), self.target.repo_wide), session, Phase.VERIFY
        )
        verdict = classify_check(result.output) if result.succeeded else None
        snapshot.verify_verdict = verdict.kind if verdict else ""

        if verdict is None or not verdict.is_clean:
            raise ConvergenceFailure(
                "fix made no changes and issue persists", code=NO_CHANGE_ISSUE_PERSISTS
            )

        logger.info("verify: false positive [%ds]", result.elapsed_seconds)
        logger.warning("checkfix: issue was likely a false positive")
        passes = session.record_pass()
        logger.info(
            "progress: %d/%d consecutive passes (false positive)",
            passes, self.config.consecutive_passes,
        )
        snapshot.outcome = "false_positive"
        snapshot.summary = "Fix made no changes; re-check passed."
        return self._after_pass(session)

    def _after_pass(self, session: Session) -> Phase:
        session.snapshots[-1].consecutive_passes = session.consecutive_passes
        if session.converged:
            return Phase.DONE
        session.iteration += 1
        return Phase.CHECK

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _invoke(self, prompt: str, session: Session, phase: Phase) -> InvocationResult:
        result = self.supervisor.run(prompt, session.log_path(phase.value), phase.value)
        if result.outcome == "blocked":
            raise ConvergenceFailure("CLI blocked on permission prompt", code=AGENT_BLOCKED)
        return result

    @staticmethod
    def _begin_iteration(session: Session) -> IterationSnapshot:
        snapshot = IterationSnapshot(iteration=session.iteration)
        session.snapshots.append(snapshot)
        session.iteration_started = time.monotonic()
        return snapshot

    @staticmethod
    def _touch_snapshot(session: Session) -> None:
        if session.snapshots:
            session.snapshots[-1].iteration_time_seconds = round(
                time.monotonic() - session.iteration_started, 3
            )

    def _result(
        self, session: Session, status: str, reason: str = "", code: str = ""
    ) -> RunResult:
        return RunResult(
            status=status,
            reason=reason,
            failure_code=code,
            identity=session.identity,
            iterations=min(session.iteration, self.config.max_iterations),
            passes=session.consecutive_passes,
            elapsed_seconds=round(session.elapsed, 3),
            log_dir=None if status == "done" else (session.log_dir or None),
            fingerprints=list(session.fingerprints),
            snapshots=list(session.snapshots),
        )

    @staticmethod
    def _report(result: RunResult) -> None:
        if result.succeeded:
            logger.info(
                "checkfix: %d passes in %d iteration(s) (%ds)",
                result.passes, result.iterations, result.elapsed_seconds,
            )
            return
        if result.status == "failed":
            logger.error(
                "checkfix: %s (iteration %d)", result.reason, result.iterations
            )
            if is_rerunnable(result.failure_code):
                logger.info("checkfix: transient failure, re-running may help")
        if result.log_dir:
            logger.info("checkfix: logs: %s", result.log_dir)
