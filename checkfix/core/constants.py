"""
Constants
Centralised storage for loop defaults, sentinel markers and supervisor timing.
"""
# Loop defaults (overridable via env / YAML / CLI)
DEFAULT_MAX_ITERATIONS = 15
DEFAULT_CONSECUTIVE_PASSES = 3
DEFAULT_RETRIES = 2
DEFAULT_TIMEOUT_SECONDS = 1200
DEFAULT_STALL_THRESHOLD_SECONDS = 90
DEFAULT_MAX_CHANGE_LINES = 1000

# zap runs a single prompt, so it gets a shorter timeout
ZAP_TIMEOUT_SECONDS = 300

# Sentinel markers emitted by the agent
MARKER_PASS = "[PASS]"
MARKER_FAIL = "[FAIL]"
MARKER_DONE = "[DONE]"
MARKER_BLOCKED = "[BLOCKED]"

# Supervisor timing
POLL_INTERVAL_SECONDS = 1.0
RETRY_DELAY_SECONDS = 5.0
ZAP_RETRY_DELAY_SECONDS = 3.0
TERMINATE_GRACE_SECONDS = 5.0
STALL_TAIL_LINES = 20

# Exit code used by coreutils `timeout` when it kills the command
TIMEOUT_EXIT_CODE = 124

# Session lock
LOCK_ATTEMPTS = 5
LOCK_BACKOFF_SECONDS = 0.1

# Process exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

DRY_RUN_OUTPUT = "[PASS] Dry run"
PROTECTED_BRANCHES = ("main", "master")
CONFIG_FILE_NAME = ".checkfix.yml"
