import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "default_range": "HEAD",  # diff range used when a command is given none
    "store_path": None,  # None = <git-dir>/review-state/review.db
    "base_branch": None,  # None = detect origin/HEAD, then main, then master
    "watch_interval": 5,
    "busy_timeout": 5.0,  # seconds SQLite waits for another process's lock
}

STORE_PATH_ENV = "HUNKGATE_STORE_PATH"


def load_config(config_path: str = ".hunkgate.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .hunkgate.yml in the current directory
      3. HUNKGATE_STORE_PATH environment variable
      4. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    env_store_path = os.environ.get(STORE_PATH_ENV)
    if env_store_path:
        config["store_path"] = env_store_path

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config
