"""
Unit Tests — Fingerprint, Verdict Parser, Stall Detection
==========================================================
Pure functions only; no processes, no filesystem.

Covers:
    - Fingerprint: deterministic, content-complete, order-sensitive
    - Verdict precedence: FAIL > BLOCKED > DONE > PASS
    - Check replies judged by PASS / FAIL only, fix replies by BLOCKED / DONE
    - Marker tolerance for markdown emphasis
    - Permission-prompt heuristic
"""
import pytest

from checkfix.models.verdict import Verdict
from checkfix.parser.verdict_parser import (
    classify,
    classify_check,
    classify_fix,
    extract_findings,
    extract_tag,
    has_marker,
    is_clean,
)
from checkfix.utils.fingerprint import compute_digest, digest_chunks, fingerprint
from checkfix.utils.stall_detection import is_blocked_on_prompt


class _Chunks:
    def __init__(self, *chunks):
        self.chunks = chunks

    def iter_content(self):
        return iter(self.chunks)


# ---------------------------------------------------------------------------
# 1. Fingerprint
# ---------------------------------------------------------------------------
class TestFingerprint:

    def test_same_content_same_digest(self):
        assert compute_digest("abc") == compute_digest("abc")
        assert compute_digest("abc") == compute_digest(b"abc")

    def test_digest_is_16_hex_chars(self):
        digest = compute_digest("hello")
        assert len(digest) == 16
        int(digest, 16)

    def test_single_byte_change_changes_digest(self):
        assert compute_digest("x = 1\n") != compute_digest("x = 2\n")

    def test_chunks_hash_like_concatenation(self):
        assert digest_chunks([b"ab", b"cd"]) == compute_digest(b"abcd")

    def test_fingerprint_reads_target_content(self):
        assert fingerprint(_Chunks(b"one", b"two")) == fingerprint(_Chunks(b"one", b"two"))
        assert fingerprint(_Chunks(b"one", b"two")) != fingerprint(_Chunks(b"one", b"tw0"))

    def test_empty_target_has_stable_digest(self):
        assert fingerprint(_Chunks()) == compute_digest(b"")


# ---------------------------------------------------------------------------
# 2. Verdict Parser
# ---------------------------------------------------------------------------
class TestClassify:

    def test_pass_is_clean(self):
        assert classify("[PASS]").kind == "clean"
        assert is_clean("All good.\n[PASS]\n")

    def test_fail_carries_report(self):
        verdict = classify("[FAIL]\napp.py:12 - off by one\n")
        assert verdict.kind == "issues_found"
        assert verdict.detail == "app.py:12 - off by one"

    def test_fail_wins_over_pass(self):
        verdict = classify("[PASS] mostly\n[FAIL]\nx.py:1 - crash")
        assert verdict.kind == "issues_found"
        assert not is_clean("[PASS]\n[FAIL]")

    def test_blocked_wins_over_done(self):
        verdict = classify("[DONE] partial\n[BLOCKED] needs database credentials")
        assert verdict.kind == "blocked"
        assert verdict.detail == "needs database credentials"

    def test_fail_wins_over_blocked(self):
        assert classify("[BLOCKED] x\n[FAIL] y").kind == "issues_found"

    def test_done_with_summary(self):
        verdict = classify("Edited files.\n[DONE] guarded empty list")
        assert verdict == Verdict(kind="fixed", detail="guarded empty list")

    def test_done_wins_over_pass(self):
        assert classify("[PASS]\n[DONE] ok").kind == "fixed"

    def test_markdown_emphasis_is_tolerated(self):
        assert classify("**[PASS]**").kind == "clean"
        assert classify("`[ FAIL ]`\nfoo.py:3 - bad").kind == "issues_found"
        assert classify("[**DONE**] tidy").detail == "tidy"

    def test_no_marker_is_unparseable(self):
        verdict = classify("I looked at the code and it seems fine.")
        assert verdict.kind == "unparseable"
        assert not verdict.is_clean

    def test_empty_text_is_unparseable(self):
        assert classify("").kind == "unparseable"

    def test_deterministic(self):
        text = "[FAIL]\na.py:1 - x\nb.py:2 - y"
        assert classify(text) == classify(text)


class TestPhaseClassifiers:

    def test_check_ignores_fix_markers(self):
        assert classify_check("[PASS] the earlier [DONE] fix looks correct").is_clean
        assert classify_check("[PASS] nothing [BLOCKED] me").is_clean
        assert is_clean("[PASS] the earlier [DONE] fix looks correct")

    def test_check_fail_still_wins(self):
        verdict = classify_check("[PASS] mostly\n[FAIL]\nx.py:1 - crash")
        assert verdict.kind == "issues_found"
        assert "x.py:1 - crash" in verdict.detail

    def test_check_without_verdict_marker(self):
        assert classify_check("[DONE] done").kind == "unparseable"

    def test_fix_blocked_despite_echoed_failures(self):
        verdict = classify_fix("Issues were:\n[FAIL] app.py:2 - x\n[BLOCKED] cannot write")
        assert verdict == Verdict(kind="blocked", detail="cannot write")

    def test_fix_done_and_silence(self):
        assert classify_fix("[FAIL] a.py:1 - x\n[DONE] patched").kind == "fixed"
        assert classify_fix("edited the file").kind == "unparseable"

    def test_has_marker_tolerates_emphasis(self):
        assert has_marker("**[ BLOCKED ]** no", "[BLOCKED]")
        assert not has_marker("BLOCKED", "[BLOCKED]")



class TestExtractors:

    def test_extract_tag_missing(self):
        assert extract_tag("nothing here", "DONE") == ""

    def test_extract_tag_no_trailing_text(self):
        assert extract_tag("[BLOCKED]", "BLOCKED") == ""

    def test_extract_findings_keeps_located_lines(self):
        report = "Summary line\nsrc/app.py:10 - leak\nutils.js:3 - race\nno location"
        assert extract_findings(report) == ["src/app.py:10 - leak", "utils.js:3 - race"]


# ---------------------------------------------------------------------------
# 3. Stall Detection
# ---------------------------------------------------------------------------
class TestPermissionPrompt:

    @pytest.mark.parametrize("tail", [
        "Allow this command to run? (y/n)",
        "Do you want to proceed?",
        "Approve edit to main.py [y] yes / [n] no",
        "Overwrite file [Y/n]",
        "Continue (yn)",
    ])
    def test_detects_prompts(self, tail):
        assert is_blocked_on_prompt(tail)

    @pytest.mark.parametrize("tail", [
        "Reading files...",
        "Analyzing src/main.py",
        "",
    ])
    def test_ignores_normal_output(self, tail):
        assert not is_blocked_on_prompt(tail)
