"""
Failure Reasons
===============
Standardised constants for why a checkfix run ended without converging.

Used by RunResult.failure_code to give the CLI, the API and results.json
clean, machine-readable reasons next to the human-readable message.
"""


# ---------------------------------------------------------------------------
# Failure Reason Constants
# ---------------------------------------------------------------------------
CHECK_FAILED = "CHECK_FAILED"
FIX_FAILED = "FIX_FAILED"
FIX_BLOCKED = "FIX_BLOCKED"
FIX_TOO_LARGE = "FIX_TOO_LARGE"
CYCLE_DETECTED = "CYCLE_DETECTED"
DID_NOT_STABILIZE = "DID_NOT_STABILIZE"
NO_CHANGE_ISSUE_PERSISTS = "NO_CHANGE_ISSUE_PERSISTS"
AGENT_BLOCKED = "AGENT_BLOCKED"
ALREADY_RUNNING = "ALREADY_RUNNING"
LOCK_FAILED = "LOCK_FAILED"
INTERRUPTED = "INTERRUPTED"

# All valid reasons (for validation)
ALL_FAILURE_REASONS = frozenset({
    CHECK_FAILED,
    FIX_FAILED,
    FIX_BLOCKED,
    FIX_TOO_LARGE,
    CYCLE_DETECTED,
    DID_NOT_STABILIZE,
    NO_CHANGE_ISSUE_PERSISTS,
    AGENT_BLOCKED,
    ALREADY_RUNNING,
    LOCK_FAILED,
    INTERRUPTED,
})


# ---------------------------------------------------------------------------
# Retryability hints (maps failure code -> whether re-running checkfix may help)
# ---------------------------------------------------------------------------
RERUN_HINTS = {
    CHECK_FAILED: True,
    FIX_FAILED: True,
    ALREADY_RUNNING: True,
    LOCK_FAILED: True,
    INTERRUPTED: True,
}


def is_rerunnable(code: str) -> bool:
    """
    Whether starting a fresh run could plausibly succeed.

    Agent/infrastructure failures are worth another run; policy violations
    (cycle, runaway fix, blocked fix) will most likely reproduce.
    """
    return RERUN_HINTS.get(code, False)
