"""
Settings loader.

Defaults, optionally overlaid by a YAML file, then by environment variables:

    ACTIVITYGRAPH_CONFIG            path of the YAML file
    ACTIVITYGRAPH_SECONDS_THRESHOLD seconds/milliseconds cut-over
    ACTIVITYGRAPH_MAX_WORKERS       concurrent page fetches
    ACTIVITYGRAPH_QUEUE_SIZE        bounded hand-off queue size
    ACTIVITYGRAPH_FAIL_FAST         abort on the first page failure
    ACTIVITYGRAPH_LOG_LEVEL         DEBUG, INFO, ...
    ACTIVITYGRAPH_LOG_FORMAT        text or json
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from .query.time import SECONDS_THRESHOLD


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


_ENV_OVERRIDES: list[tuple[str, str, type]] = [
    ("ACTIVITYGRAPH_SECONDS_THRESHOLD", "seconds_threshold", int),
    ("ACTIVITYGRAPH_MAX_WORKERS", "max_workers", int),
    ("ACTIVITYGRAPH_QUEUE_SIZE", "queue_size", int),
    ("ACTIVITYGRAPH_FAIL_FAST", "fail_fast", _bool),
    ("ACTIVITYGRAPH_LOG_LEVEL", "log_level", str),
    ("ACTIVITYGRAPH_LOG_FORMAT", "log_format", str),
]


@dataclass(frozen=True)
class Settings:
    seconds_threshold: int = SECONDS_THRESHOLD
    max_workers: int = 4
    queue_size: int = 8
    fail_fast: bool = False
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[dict] = None,
    ) -> "Settings":
        """Load settings from YAML (if any) and apply environment overrides."""
        env = os.environ if environ is None else environ
        if config_path is None:
            config_path = env.get("ACTIVITYGRAPH_CONFIG")

        data: dict = {}
        if config_path is not None:
            with open(config_path) as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"{config_path}: expected a mapping at top level")
            data.update(loaded.get("activitygraph", loaded))

        for env_var, name, cast in _ENV_OVERRIDES:
            value = env.get(env_var)
            if value is not None:
                data[name] = cast(value)

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        return cls(**data)
