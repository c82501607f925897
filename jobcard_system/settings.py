"""Application settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    default_actor: str = "system"
    title: str = "Job Card Planning"


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        log_level=os.getenv("JOBCARD_LOG_LEVEL", defaults.log_level),
        default_actor=os.getenv("JOBCARD_DEFAULT_ACTOR", defaults.default_actor),
        title=os.getenv("JOBCARD_TITLE", defaults.title),
    )
