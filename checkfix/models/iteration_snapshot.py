"""
Iteration Snapshot Model
========================
Pydantic model representing one iteration of the check/fix loop.

Fields:
    iteration             — loop counter (1-based)
    check_verdict         — verdict kind of the check call ("" if the call failed)
    fix_verdict           — verdict kind of the fix call ("" if no fix ran)
    verify_verdict        — verdict kind of the re-verification ("" if none ran)
    fingerprint_before    — target fingerprint at the start of the fix
    fingerprint_after     — target fingerprint after the fix
    change_size           — lines changed by the fix (0 if unchanged)
    consecutive_passes    — pass counter at the end of the iteration
    outcome               — passed / fixed / false_positive / failed
    summary               — brief text summarising what happened
    iteration_time_seconds — wall clock time for this iteration

Used by:
    - Controller to keep a per-iteration history
    - Results writer to compile summary.json
"""
from pydantic import BaseModel


class IterationSnapshot(BaseModel):
    iteration: int
    check_verdict: str = ""
    fix_verdict: str = ""
    verify_verdict: str = ""
    fingerprint_before: str = ""
    fingerprint_after: str = ""
    change_size: int = 0
    consecutive_passes: int = 0
    outcome: str = ""
    summary: str = ""
    iteration_time_seconds: float = 0.0
