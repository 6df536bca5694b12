"""
Config Loader
=============
Builds the SessionConfig for a run from layered sources.

Precedence (lowest → highest):
    1. Defaults / environment (checkfix.core.config, via python-dotenv)
    2. YAML file: --config PATH, else .checkfix.yml in the target root
    3. Explicit overrides (CLI flags, API request fields)

A YAML file may also set ``cli`` and ``cli_cmd``; those are returned
separately because they select the agent rather than tune the loop.
"""
import os
import logging
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from checkfix.core.constants import CONFIG_FILE_NAME
from checkfix.core.errors import ConfigError
from checkfix.models.session_config import SessionConfig

logger = logging.getLogger(__name__)

_AGENT_KEYS = ("cli", "cli_cmd")


def read_config_file(path: str) -> Dict[str, Any]:
    """
    Parse a YAML config file into a mapping.

    Raises
    ------
    ConfigError
        Unreadable file, invalid YAML, or a top level that is not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    # YAML keys may use dashes like the CLI flags
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def find_config_file(root: str) -> Optional[str]:
    path = os.path.join(root, CONFIG_FILE_NAME)
    return path if os.path.isfile(path) else None


def load_session_config(
    root: str,
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[SessionConfig, Dict[str, Any]]:
    """
    Merge all configuration layers.

    Parameters
    ----------
    root : str
        Target root searched for .checkfix.yml.
    config_path : str | None
        Explicit config file (must exist).
    overrides : dict | None
        Highest-precedence values; None entries are ignored.

    Returns
    -------
    tuple[SessionConfig, dict]
        The validated loop configuration and the agent selection keys
        (``cli`` / ``cli_cmd``) found in the file.
    """
    path = config_path or find_config_file(root)
    file_values: Dict[str, Any] = read_config_file(path) if path else {}
    if path:
        logger.info("Loaded config from %s", path)

    agent_values = {k: file_values.pop(k) for k in _AGENT_KEYS if k in file_values}
    merged = dict(file_values)
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        session_config = SessionConfig(**merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"invalid configuration: {problems}") from exc

    return session_config, agent_values
