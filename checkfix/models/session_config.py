"""
Session Config Model
====================
Validated loop and supervisor settings for one session.

Every numeric knob must be a positive integer, matching what the CLI
accepts. Unknown keys are rejected so a typo in .checkfix.yml fails loudly.
Defaults come from the environment (checkfix.core.config) and are read
when the model is built, so they go through the same validation as values
from a file or a flag.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator

from checkfix.core import config


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_default=True)

    max_iterations: int = Field(default_factory=lambda: config.MAX_ITERATIONS)
    consecutive_passes: int = Field(default_factory=lambda: config.CONSECUTIVE_PASSES)
    retries: int = Field(default_factory=lambda: config.RETRIES)
    timeout_seconds: int = Field(default_factory=lambda: config.TIMEOUT_SECONDS)
    stall_threshold_seconds: int = Field(default_factory=lambda: config.STALL_THRESHOLD_SECONDS)
    max_change_lines: int = Field(default_factory=lambda: config.MAX_CHANGE_LINES)
    dry_run: bool = False

    @field_validator(
        "max_iterations",
        "consecutive_passes",
        "retries",
        "timeout_seconds",
        "stall_threshold_seconds",
        "max_change_lines",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v
