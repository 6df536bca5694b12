"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    CHECKFIX_CLI               — Agent CLI name: claude, codex, gemini, rovo (default: claude)
    CHECKFIX_CLI_CMD           — Full custom agent command, overrides CHECKFIX_CLI
    CHECKFIX_MAX_ITERATIONS    — Max check/fix iterations (default: 15)
    CHECKFIX_CONSECUTIVE       — Consecutive clean checks required (default: 3)
    CHECKFIX_RETRIES           — Attempts per agent call (default: 2)
    CHECKFIX_TIMEOUT           — Seconds per agent call (default: 1200)
    CHECKFIX_STALL_THRESHOLD   — Seconds without output growth before a call is "stalled" (default: 90)
    CHECKFIX_MAX_CHANGE_LINES  — Runaway ceiling for a single fix, in lines (default: 1000)
    CHECKFIX_TMP_DIR           — Where lock and log directories live (default: system temp dir)
    ZAP_CLI / ZAP_CLI_CMD      — Same as CHECKFIX_CLI / CHECKFIX_CLI_CMD for the zap runner

Timeout Philosophy:
    A review of a large diff by an agent can legitimately take many minutes,
    so the per-call timeout is generous. Stall detection is what catches the
    agent sitting on an interactive prompt long before the timeout fires.
"""
import os
import tempfile

from dotenv import load_dotenv

from checkfix.core.constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_CONSECUTIVE_PASSES,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_STALL_THRESHOLD_SECONDS,
    DEFAULT_MAX_CHANGE_LINES,
)

load_dotenv()

CHECKFIX_CLI = os.getenv("CHECKFIX_CLI", "")
CHECKFIX_CLI_CMD = os.getenv("CHECKFIX_CLI_CMD", "")
ZAP_CLI = os.getenv("ZAP_CLI", "")
ZAP_CLI_CMD = os.getenv("ZAP_CLI_CMD", "")

MAX_ITERATIONS = int(os.getenv("CHECKFIX_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS))
CONSECUTIVE_PASSES = int(os.getenv("CHECKFIX_CONSECUTIVE", DEFAULT_CONSECUTIVE_PASSES))
RETRIES = int(os.getenv("CHECKFIX_RETRIES", DEFAULT_RETRIES))
TIMEOUT_SECONDS = int(os.getenv("CHECKFIX_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
STALL_THRESHOLD_SECONDS = int(os.getenv("CHECKFIX_STALL_THRESHOLD", DEFAULT_STALL_THRESHOLD_SECONDS))
MAX_CHANGE_LINES = int(os.getenv("CHECKFIX_MAX_CHANGE_LINES", DEFAULT_MAX_CHANGE_LINES))

# Lock and session log directories are created here
TMP_DIR = os.getenv("CHECKFIX_TMP_DIR") or tempfile.gettempdir()
