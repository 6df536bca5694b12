"""
Verdict Parser
==============
Converts free-text agent output into a structured Verdict.

Pipeline:
    1. Strip whitespace and markdown emphasis (* _ ` #) from a copy of the text
    2. Look for the sentinel markers [FAIL], [BLOCKED], [DONE], [PASS]
    3. Apply precedence: FAIL > BLOCKED > DONE > PASS
    4. Attach the payload: the issue report for FAIL, the first line's
       trailing text for DONE / BLOCKED

Check and verify replies go through classify_check (only PASS / FAIL
matter); fix replies go through classify_fix (only BLOCKED / DONE matter).
classify applies the full precedence chain to arbitrary text.

Contract:
    - DETERMINISTIC: same text → same Verdict, always.
    - [FAIL] always wins over [PASS]; an isolated [PASS] in output that also
      reports failures is never trusted.
    - The issue report is opaque: one finding per line is expected but never
      validated here.
"""
import re
from typing import List

from checkfix.core.constants import MARKER_PASS, MARKER_FAIL, MARKER_DONE, MARKER_BLOCKED
from checkfix.models.verdict import Verdict

# Characters removed before marker detection
_NOISE_RE = re.compile(r"[\s*_`#]+")
_TRIM_CHARS = " \t*_`#"

# "path/to/file.ext:123" somewhere in a line
_LOCATION_RE = re.compile(r"[A-Za-z0-9_/-]+\.[A-Za-z]+:\d+")


def _normalize(text: str) -> str:
    return _NOISE_RE.sub("", text)


def _tag_re(tag: str) -> re.Pattern:
    # Tolerates emphasis inside the brackets, e.g. "[**DONE**]"
    return re.compile(r"\[[\s*_`#]*" + tag + r"[\s*_`#]*\](.*)")


_DONE_RE = _tag_re("DONE")
_BLOCKED_RE = _tag_re("BLOCKED")
_FAIL_RE = re.compile(r"\[[\s*_`#]*FAIL[\s*_`#]*\]")


def extract_tag(text: str, tag: str) -> str:
    """
    Return the free text following the first ``[TAG]`` marker on its line.

    Returns an empty string when the marker is absent or has no trailing text.
    """
    match = _tag_re(tag).search(text)
    if not match:
        return ""
    return match.group(1).strip(_TRIM_CHARS)


def classify(text: str) -> Verdict:
    """
    Classify agent output.

    Parameters
    ----------
    text : str
        Raw combined output of one agent call.

    Returns
    -------
    Verdict
        issues_found / blocked / fixed / clean / unparseable.
    """
    normalized = _normalize(text)

    if MARKER_FAIL in normalized:
        report = _FAIL_RE.sub("", text).strip()
        return Verdict(kind="issues_found", detail=report)

    if MARKER_BLOCKED in normalized:
        return Verdict(kind="blocked", detail=extract_tag(text, "BLOCKED"))

    if MARKER_DONE in normalized:
        return Verdict(kind="fixed", detail=extract_tag(text, "DONE"))

    if MARKER_PASS in normalized:
        return Verdict(kind="clean")

    return Verdict(kind="unparseable")


def has_marker(text: str, marker: str) -> bool:
    """True when ``marker`` (e.g. ``[PASS]``) appears, ignoring emphasis and spacing."""
    return marker in _normalize(text)


def classify_check(text: str) -> Verdict:
    """
    Classify the reply to a check (or verify) prompt.

    Only [PASS] and [FAIL] carry meaning here; a [DONE] or [BLOCKED]
    quoted in a review never changes its verdict.

    Returns
    -------
    Verdict
        issues_found when [FAIL] is present, clean when [PASS] is present
        without [FAIL], otherwise unparseable.
    """
    if has_marker(text, MARKER_FAIL):
        return Verdict(kind="issues_found", detail=_FAIL_RE.sub("", text).strip())
    if has_marker(text, MARKER_PASS):
        return Verdict(kind="clean")
    return Verdict(kind="unparseable")


def classify_fix(text: str) -> Verdict:
    """
    Classify the reply to a fix prompt.

    [BLOCKED] alone decides a blocked fix, even when the reply echoes the
    [FAIL] issue report it was handed. Anything else is judged by the
    fingerprint, so the verdict here is informational.
    """
    if has_marker(text, MARKER_BLOCKED):
        return Verdict(kind="blocked", detail=extract_tag(text, "BLOCKED"))
    if has_marker(text, MARKER_DONE):
        return Verdict(kind="fixed", detail=extract_tag(text, "DONE"))
    return Verdict(kind="unparseable")


def is_clean(text: str) -> bool:
    """True only for output carrying [PASS] and no [FAIL]."""
    return classify_check(text).is_clean


def extract_findings(report: str) -> List[str]:
    """
    Pull the ``file.ext:line`` findings out of an issue report for display.

    Lines without a location token are skipped.
    """
    return [line.strip() for line in report.splitlines() if _LOCATION_RE.search(line)]
