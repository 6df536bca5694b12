"""
Command Resolver
================
Maps an agent CLI name to the command line that runs it headlessly.

Every supported CLI reads the prompt from stdin and prints its answer.
Resolver never executes commands — it only returns argument lists.
Commands are passed to the Process Supervisor for execution.

Deterministic: same CLI name → same command, always.
"""
import shlex
import shutil
from dataclasses import dataclass
from typing import Dict, List, Optional

from checkfix.core.errors import AgentNotFoundError, ConfigError


@dataclass(frozen=True)
class ResolvedAgent:
    """
    Immutable description of the agent to run.

    Fields
    ------
    name : str
        CLI name ("claude", "codex", ...) or "custom" for an override command.
    command : list[str]
        Argument vector; the prompt is fed on stdin.
    """
    name: str
    command: List[str]

    @property
    def executable(self) -> str:
        return self.command[0]


# ---------------------------------------------------------------------------
# Command mapping: CLI name → command line
# ---------------------------------------------------------------------------
_COMMAND_MAP: dict[str, str] = {
    "claude": "claude --print",
    "codex": "codex exec",
    "gemini": "gemini",
    "rovo": "acli rovodev run",
}

DEFAULT_CLI = "claude"


def get_supported_clis() -> list[str]:
    """Return all CLI names that have command mappings."""
    return list(_COMMAND_MAP)


def resolve_agent(cli: Optional[str] = None, custom_command: Optional[str] = None) -> ResolvedAgent:
    """
    Look up the agent command.

    Parameters
    ----------
    cli : str | None
        CLI name. Defaults to "claude".
    custom_command : str | None
        Full command line that overrides the mapping (CHECKFIX_CLI_CMD).

    Returns
    -------
    ResolvedAgent

    Raises
    ------
    ConfigError
        Unknown CLI name or an empty custom command.
    """
    if custom_command:
        parts = shlex.split(custom_command)
        if not parts:
            raise ConfigError("custom CLI command is empty")
        return ResolvedAgent(name="custom", command=parts)

    name = cli or DEFAULT_CLI
    if name not in _COMMAND_MAP:
        raise ConfigError(
            f"unknown CLI: {name} (available: {' '.join(get_supported_clis())})"
        )
    return ResolvedAgent(name=name, command=shlex.split(_COMMAND_MAP[name]))


def ensure_available(agent: ResolvedAgent) -> None:
    """Raise AgentNotFoundError if the agent executable is not on PATH."""
    if shutil.which(agent.executable) is None:
        raise AgentNotFoundError(f"{agent.name} not found in PATH")


def select_agent(
    cli: Optional[str] = None,
    file_values: Optional[Dict[str, str]] = None,
    env_cli: str = "",
    env_command: str = "",
) -> ResolvedAgent:
    """
    Apply agent selection precedence and resolve.

    An environment command override always wins. Otherwise an explicit
    ``cli`` beats the config file, which beats the environment name.
    A config-file ``cli_cmd`` applies only when no explicit ``cli`` is given.
    """
    file_values = file_values or {}
    custom_command = env_command or (None if cli else file_values.get("cli_cmd"))
    return resolve_agent(
        cli or file_values.get("cli") or env_cli or None,
        custom_command=custom_command,
    )
