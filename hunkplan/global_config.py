"""User-level settings in ~/.hunkplan/.

Two files live there:
- config.yaml: provider, model, generation limits and a ``planner:`` section
- credentials: ``NAME=value`` API keys, readable by the owner only
"""

import os
import stat
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from hunkplan.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_TEMPERATURE,
    LLMProvider,
)


class GlobalConfigError(Exception):
    """Raised when a file under ~/.hunkplan cannot be read or written."""


_CONFIG_DIR = Path.home() / ".hunkplan"

_CREDENTIALS_HEADER = (
    "# hunkplan API credentials, one NAME=value per line\n"
    "# Managed by 'hunkplan config set-key'\n\n"
)

# Planner values written by initialize_default_config
_DEFAULT_PLANNER_SECTION = {
    "cut_threshold": 0.6,
    "synthesis_workers": 4,
    "synthesis_timeout": 30.0,
}


def get_global_config_dir() -> Path:
    return _CONFIG_DIR


def ensure_global_config_dir() -> Path:
    """Create ~/.hunkplan if needed and return it."""
    _CONFIG_DIR.mkdir(exist_ok=True)
    return _CONFIG_DIR


def get_config_file_path() -> Path:
    return get_global_config_dir() / "config.yaml"


def get_credentials_file_path() -> Path:
    return get_global_config_dir() / "credentials"


def load_global_config() -> Dict[str, Any]:
    """Read config.yaml; an absent file reads as an empty dict.

    Raises:
        GlobalConfigError: If the file exists but is unreadable or not YAML.
    """
    path = get_config_file_path()
    if not path.exists():
        return {}
    try:
        return yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise GlobalConfigError(f"Failed to load config from {path}: {e}")


def save_global_config(config: Dict[str, Any]) -> None:
    ensure_global_config_dir()
    path = get_config_file_path()
    try:
        path.write_text(yaml.safe_dump(config, default_flow_style=False, sort_keys=False))
    except OSError as e:
        raise GlobalConfigError(f"Failed to save config to {path}: {e}")


def _update_global_config(**values: Any) -> None:
    config = load_global_config()
    config.update(values)
    save_global_config(config)


def load_credentials() -> Dict[str, str]:
    """Map of variable name to API key from ~/.hunkplan/credentials.

    Blank lines, comments and lines without ``=`` are skipped.
    """
    path = get_credentials_file_path()
    if not path.exists():
        return {}
    try:
        lines = path.read_text().splitlines()
    except OSError as e:
        raise GlobalConfigError(f"Failed to load credentials from {path}: {e}")

    credentials: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if line and not line.startswith("#") and "=" in line:
            name, value = line.split("=", 1)
            credentials[name.strip()] = value.strip()
    return credentials


def save_credential(provider_key: str, api_key: str) -> None:
    """Store ``provider_key=api_key``, keeping the other stored keys.

    Args:
        provider_key: Variable name such as "CEREBRAS_API_KEY".
        api_key: The key itself.
    """
    credentials = load_credentials()
    credentials[provider_key] = api_key
    body = _CREDENTIALS_HEADER + "".join(f"{k}={v}\n" for k, v in credentials.items())

    ensure_global_config_dir()
    path = get_credentials_file_path()
    private = stat.S_IRUSR | stat.S_IWUSR
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, private)
        with os.fdopen(fd, "w") as f:
            f.write(body)
        # An existing file keeps its old mode through os.open
        os.chmod(path, private)
    except OSError as e:
        raise GlobalConfigError(f"Failed to save credential: {e}")


def get_credential(provider_key: str) -> Optional[str]:
    return load_credentials().get(provider_key)


def get_active_provider() -> Optional[LLMProvider]:
    """Configured provider; None when unset or not a known provider."""
    value = load_global_config().get("provider")
    try:
        return LLMProvider(value) if value else None
    except ValueError:
        return None


def get_active_model() -> Optional[str]:
    return load_global_config().get("model")


def set_provider_and_model(provider: LLMProvider, model: str) -> None:
    _update_global_config(provider=provider.value, model=model)


def get_max_tokens() -> Optional[int]:
    return load_global_config().get("max_tokens")


def get_temperature() -> Optional[float]:
    return load_global_config().get("temperature")


def get_planner_config() -> dict:
    """The ``planner:`` overrides (empty when absent or null)."""
    return load_global_config().get("planner") or {}


def set_planner_value(key: str, value: Any) -> None:
    """Store one planner setting, e.g. ``set_planner_value("cut_threshold", 0.8)``."""
    _update_global_config(planner={**get_planner_config(), key: value})


def initialize_default_config() -> None:
    """Write a starter config.yaml unless one already exists."""
    if is_configured():
        return
    save_global_config({
        "provider": DEFAULT_PROVIDER.value,
        "model": DEFAULT_MODEL,
        "max_tokens": DEFAULT_MAX_TOKENS,
        "temperature": DEFAULT_TEMPERATURE,
        "planner": dict(_DEFAULT_PLANNER_SECTION),
    })


def is_configured() -> bool:
    return get_config_file_path().exists()
