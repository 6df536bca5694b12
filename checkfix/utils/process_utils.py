"""
Process Utils
=============
Helpers for reasoning about other processes by PID.
"""
import os


def pid_is_alive(pid: int) -> bool:
    """Return True if a process with this PID exists (signal 0 probe)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by another user
        return True
    return True
