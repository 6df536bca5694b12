"""
Stall Detection
===============
Heuristic check for an agent that is waiting on an interactive
confirmation it can never get in headless mode.

Kept behind a single predicate so the pattern set can change without
touching the supervisor's timing logic.
"""
import re

# "Allow this command? (y/n)", "Do you want to proceed? yes / no", ...
_CONFIRM_PROMPT_RE = re.compile(
    r"(allow|permit|approve|confirm|continue|proceed).*(y/n|\[y\]|yes.*no|\?)",
    re.DOTALL,
)
# Bare "[y/n]" / "(Y/n)" / "[yn]"
_YN_CHOICE_RE = re.compile(r"[(\[]y/?n[)\]]")


def is_blocked_on_prompt(tail: str) -> bool:
    """
    Return True if the output tail looks like a yes/no permission prompt.

    Parameters
    ----------
    tail : str
        The last lines of captured agent output.
    """
    text = tail.lower()
    return bool(_CONFIRM_PROMPT_RE.search(text) or _YN_CHOICE_RE.search(text))
