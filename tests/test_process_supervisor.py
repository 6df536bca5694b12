"""
Process Supervisor Tests
========================
Real child processes (``sys.executable -c ...``) with a short poll
interval, so timeout, stall and retry paths run for real.

Covers:
    - Prompt delivered on stdin and saved beside the transcript
    - Outcome classification: success / empty_output / nonzero_exit / timeout
    - Retries with attempt count; blocked calls are not retried
    - Stall without a prompt is reported but not fatal
    - Dry run never spawns
"""
import os
import sys
import pytest

from checkfix.executor.process_supervisor import ProcessSupervisor, prompt_path_for


def _supervisor(code, **overrides):
    params = dict(
        timeout_seconds=20,
        stall_threshold_seconds=20,
        retries=1,
        retry_delay=0,
        poll_interval=0.05,
    )
    params.update(overrides)
    return ProcessSupervisor([sys.executable, "-c", code], **params)


# ---------------------------------------------------------------------------
# 1. Outcome classification
# ---------------------------------------------------------------------------
class TestOutcomes:

    def test_success_reads_prompt_from_stdin(self, tmp_path):
        out = tmp_path / "check_1.txt"
        sup = _supervisor("import sys; print('[PASS] got ' + sys.stdin.read().strip())")

        result = sup.run("review please", str(out), "check")

        assert result.outcome == "success"
        assert result.exit_code == 0
        assert result.output.strip() == "[PASS] got review please"
        assert out.read_text().strip() == "[PASS] got review please"
        assert (tmp_path / "check_1.prompt").read_text() == "review please"

    def test_stderr_is_captured(self, tmp_path):
        sup = _supervisor("import sys; sys.stderr.write('warn\\n'); print('[PASS]')")
        result = sup.run("p", str(tmp_path / "o.txt"))
        assert "warn" in result.output
        assert "[PASS]" in result.output

    def test_empty_output(self, tmp_path):
        result = _supervisor("pass").run("p", str(tmp_path / "o.txt"))
        assert result.outcome == "empty_output"
        assert not result.succeeded

    def test_nonzero_exit(self, tmp_path):
        result = _supervisor("import sys; print('oops'); sys.exit(3)").run(
            "p", str(tmp_path / "o.txt")
        )
        assert result.outcome == "nonzero_exit"
        assert result.exit_code == 3
        assert result.reason == "exit 3"

    def test_exit_124_counts_as_timeout(self, tmp_path):
        result = _supervisor("import sys; sys.exit(124)").run("p", str(tmp_path / "o.txt"))
        assert result.outcome == "timeout"

    def test_missing_executable(self, tmp_path):
        sup = ProcessSupervisor(
            ["checkfix-no-such-cli-xyz"], timeout_seconds=5,
            stall_threshold_seconds=5, retries=1, retry_delay=0,
        )
        result = sup.run("p", str(tmp_path / "o.txt"))
        assert result.outcome == "nonzero_exit"
        assert result.exit_code == 127

    def test_timeout_kills_child(self, tmp_path):
        sup = _supervisor("import time; time.sleep(30)", timeout_seconds=1)
        result = sup.run("p", str(tmp_path / "o.txt"))
        assert result.outcome == "timeout"
        assert result.elapsed_seconds < 10


# ---------------------------------------------------------------------------
# 2. Retries
# ---------------------------------------------------------------------------
class TestRetries:

    def test_retries_until_attempts_exhausted(self, tmp_path):
        result = _supervisor("pass", retries=3).run("p", str(tmp_path / "o.txt"))
        assert result.outcome == "empty_output"
        assert result.attempts == 3

    def test_succeeds_on_later_attempt(self, tmp_path):
        marker = tmp_path / "seen"
        code = (
            "import os, sys\n"
            f"m = {str(marker)!r}\n"
            "if not os.path.exists(m):\n"
            "    open(m, 'w').close(); sys.exit(1)\n"
            "print('[PASS]')\n"
        )
        result = _supervisor(code, retries=2).run("p", str(tmp_path / "o.txt"))
        assert result.succeeded
        assert result.attempts == 2
        # Transcript holds only the last attempt
        assert result.output.strip() == "[PASS]"


# ---------------------------------------------------------------------------
# 3. Stall and permission prompts
# ---------------------------------------------------------------------------
class TestStall:

    def test_permission_prompt_is_blocked_and_not_retried(self, tmp_path):
        code = (
            "import sys, time\n"
            "print('Allow this command to run? (y/n)'); sys.stdout.flush()\n"
            "time.sleep(30)\n"
        )
        sup = _supervisor(code, stall_threshold_seconds=1, retries=3)
        result = sup.run("p", str(tmp_path / "o.txt"))

        assert result.outcome == "blocked"
        assert result.attempts == 1
        assert result.stalled

    def test_quiet_child_is_stalled_but_completes(self, tmp_path):
        code = (
            "import sys, time\n"
            "print('thinking'); sys.stdout.flush()\n"
            "time.sleep(2.5)\n"
            "print('[PASS]')\n"
        )
        statuses = []
        sup = _supervisor(
            code, stall_threshold_seconds=1,
            on_progress=lambda phase, status, elapsed: statuses.append(status),
        )
        result = sup.run("p", str(tmp_path / "o.txt"), "check")

        assert result.succeeded
        assert result.stalled
        assert statuses[0] == "starting"
        assert "stalled" in statuses


# ---------------------------------------------------------------------------
# 4. Dry run and lifecycle
# ---------------------------------------------------------------------------
class TestLifecycle:

    def test_dry_run_never_spawns(self, tmp_path):
        sup = ProcessSupervisor(
            ["checkfix-no-such-cli-xyz"], timeout_seconds=5,
            stall_threshold_seconds=5, retries=1, dry_run=True,
        )
        out = tmp_path / "o.txt"
        result = sup.run("p", str(out))
        assert result.succeeded
        assert result.output.startswith("[PASS]")
        assert out.read_text().startswith("[PASS]")

    def test_terminate_when_idle_is_safe(self):
        sup = _supervisor("pass")
        sup.terminate()
        sup.terminate()

    def test_prompt_path_for(self):
        assert prompt_path_for(os.path.join("logs", "fix_3.txt")) == os.path.join("logs", "fix_3.prompt")
