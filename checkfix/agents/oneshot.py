"""
One-Shot Runner (zap)
=====================
Runs a single prompt against the branch diff or a list of files and
returns the agent's answer. No loop, no lock, no fingerprints: it reuses
the Process Supervisor for timeout, stall and retry handling only.
"""
import os
import logging
import tempfile
from typing import Union

from checkfix.executor.process_supervisor import ProcessSupervisor, prompt_path_for
from checkfix.models.invocation import InvocationResult
from checkfix.services.targets import DiffTarget, FileTarget

logger = logging.getLogger(__name__)


def build_prompt(target: Union[DiffTarget, FileTarget], prompt: str) -> str:
    """Context block (inline files or the diff) followed by the instruction."""
    return f"{target.render_context()}\n\n{prompt}"


def run_oneshot(
    target: Union[DiffTarget, FileTarget],
    prompt: str,
    supervisor: ProcessSupervisor,
) -> InvocationResult:
    """
    Run one prompt and return the supervised result.

    The transcript lives in a temp file that is removed before returning;
    the output text is carried on the result.
    """
    fd, output_path = tempfile.mkstemp(prefix="zap-", suffix=".txt")
    os.close(fd)
    try:
        return supervisor.run(build_prompt(target, prompt), output_path, "zap")
    finally:
        supervisor.terminate()
        for path in (output_path, prompt_path_for(output_path)):
            if os.path.exists(path):
                os.remove(path)
