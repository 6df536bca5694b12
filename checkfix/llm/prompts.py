"""
Agent Prompts
=============
Centralised store for the check, fix and one-shot (zap) prompts.

Prompt Design Rules:
    - Every prompt ends with the exact sentinel format the Verdict Parser
      understands: [PASS] / [FAIL] for checks, [DONE] / [BLOCKED] for fixes.
    - Findings are requested one per line as "filename.ext:line - description"
      so the report can be handed to the fix step verbatim.
    - Style, naming and refactoring opinions are explicitly out of scope;
      an agent that reports them never lets the loop converge.

Repo-wide mode omits the <files> block and lets the agent explore.
"""
from typing import Dict


# ---------------------------------------------------------------------------
# Shared instructions
# ---------------------------------------------------------------------------
_REVIEW_RULES = (
    "Review for bugs: logic errors, crashes, data loss, security flaws, resource leaks, "
    "race conditions, performance problems.\n"
    "Consider overall purpose when evaluating correctness. Skip style, naming, "
    "refactoring opinions, speculative issues.\n"
    "Report all instances of each bug pattern found."
)

_CHECK_OUTPUT = (
    "Output: [PASS] if clean, or [FAIL] with:\n"
    "filename.ext:line - description max 12 words (one per line, no full paths, no markdown)"
)

_FIX_RULES = (
    "Fix each issue with minimal changes. Fix all occurrences of each bug pattern. "
    "Follow existing patterns. Do not remove unrelated code. Run tests to verify."
)

_FIX_OUTPUT = "Output: [DONE] brief summary (max 10 words), or [BLOCKED] reason if unable."


def check_prompt(target_description: str, repo_wide: bool = False) -> str:
    """
    Build the review prompt.

    Parameters
    ----------
    target_description : str
        Newline-separated file list from the target.
    repo_wide : bool
        True when the agent should review the whole repository.
    """
    subject = "this repository" if repo_wide else "the listed files"
    rules = _REVIEW_RULES.replace("Review for bugs", f"Review {subject} for bugs", 1)
    files_block = "" if repo_wide else f"<files>\n{target_description}\n</files>\n\n"
    return f"{files_block}{rules}\n\n{_CHECK_OUTPUT}\n"


def fix_prompt(issues: str, target_description: str, repo_wide: bool = False) -> str:
    """Build the repair prompt carrying the check step's issue report."""
    files_block = "" if repo_wide else f"<files>\n{target_description}\n</files>\n\n"
    return (
        f"{files_block}"
        f"<issues>\n{issues}\n</issues>\n"
        "\n"
        f"{_FIX_RULES}\n"
        "\n"
        f"{_FIX_OUTPUT}\n"
    )


# ---------------------------------------------------------------------------
# zap presets
# ---------------------------------------------------------------------------
PRESETS: Dict[str, str] = {
    "pr": (
        "Analyze the diff against main and write a brief PR description in one short paragraph "
        "explaining the core issue and fix rationale. Skip file lists, bullets, implementation "
        "details, and line references. Follow with a one-line summary under 10 words in "
        "lowercase without punctuation. Tone: neutral, idiomatic."
    ),
    "improve": (
        "Analyze the diff against main and implement targeted, high-value improvements using "
        "robust, standard patterns. Ensure consistency and comprehensive test coverage. Keep the "
        "solution simple and self-documenting, strictly avoiding over-engineering and redundant "
        "comments."
    ),
    "build": (
        "Run the build and test suite to ensure all checks pass. Fix any failures by addressing "
        "the root cause. Keep the solution simple and robust, strictly avoiding brittle "
        "workarounds or error suppression."
    ),
    "clean": (
        "Refactor this code to be tighter and cleaner without sacrificing readability. Remove "
        "redundancy and fluff, simplify verbose expressions, but don't over-compress. Avoid "
        "unnecessary comments. Concise, not cryptic."
    ),
    "check": f"{_REVIEW_RULES} {_CHECK_OUTPUT}".replace("\n", " "),
    "checkfix": (
        f"{_REVIEW_RULES} {_FIX_RULES} "
        "Output: [PASS] if clean, [DONE] brief summary if fixed, or [BLOCKED] reason if unable."
    ).replace("\n", " "),
}


def preset_prompt(name: str) -> str:
    """Return a preset prompt; KeyError for unknown names."""
    return PRESETS[name]
