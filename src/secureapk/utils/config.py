"""Helpers for loading the user configuration file (~/.secureapk/config.json)."""

from __future__ import annotations

import json
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

CONFIG_ENV_VAR = "SECUREAPK_CONFIG"
CONFIG_DIR = Path.home() / ".secureapk"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Environment variables that win over config.json entries
ENV_OVERRIDES: dict[str, str] = {
    "output_dir": "SECUREAPK_OUTPUT_DIR",
    "scratch_dir": "SECUREAPK_SCRATCH_DIR",
    "keystore_dir": "SECUREAPK_KEYSTORE_DIR",
}


class Settings(BaseModel):
    """Runtime settings for the analysis and repackaging pipeline."""

    output_dir: Path = Path("fixed_apks")
    """Directory receiving dev-mode archives."""

    scratch_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    """Parent directory for per-job extraction roots."""

    keystore_dir: Path = CONFIG_DIR
    """Directory holding the lazily generated debug keystore."""

    keystore_name: str = "debug.keystore"
    key_alias: str = "androiddebugkey"
    keystore_pass: str = "android"
    key_pass: str = "android"

    max_workers: int = Field(default=8, ge=1)
    """Upper bound on concurrently running checks within one job."""

    tool_timeout: float = Field(default=300.0, gt=0)
    """Timeout in seconds for zipalign/apksigner/keytool invocations."""

    @property
    def keystore_path(self) -> Path:
        return self.keystore_dir.expanduser() / self.keystore_name


def _config_file() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else CONFIG_FILE


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """Load configuration data from disk (cached)."""

    config_file = _config_file()
    if not config_file.exists():
        return {}

    try:
        raw = config_file.read_text()
    except OSError:
        return {}

    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data

    return {}


def get_settings(**overrides: Any) -> Settings:
    """Build Settings from config.json, environment variables and overrides.

    Keyword overrides take precedence over the environment, which takes
    precedence over the config file. Unknown config.json keys are ignored.
    """

    values: dict[str, Any] = {
        key: value
        for key, value in load_config().items()
        if key in Settings.model_fields
    }

    for key, env_var in ENV_OVERRIDES.items():
        if env_value := os.environ.get(env_var):
            values[key] = env_value

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def reload_config() -> None:
    """Force the cached configuration to be reloaded on next access."""

    load_config.cache_clear()
