"""Per-repository settings stored in .hunkplan/config.yaml.

The file carries two sections: ``ignore``, glob patterns whose files never
reach the planner, and ``planner``, overrides merged on top of the global
planner settings.
"""

import copy
from pathlib import Path
from typing import Callable

import yaml

CONFIG_DIR_NAME = ".hunkplan"

DEFAULT_CONFIG = {
    "ignore": [
        # Generated dependency locks
        "poetry.lock",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "Cargo.lock",
        "Gemfile.lock",
        "composer.lock",
        "go.sum",
        # Bundled or compiled output
        "*.min.js",
        "*.min.css",
        "*.map",
        "*.pyc",
        "*.so",
    ],
    "planner": {},
}


def get_config_dir(repo_root: Path) -> Path:
    """Return the .hunkplan directory of a repository."""
    return repo_root / CONFIG_DIR_NAME


def get_config_file(repo_root: Path) -> Path:
    return get_config_dir(repo_root) / "config.yaml"


def _with_defaults(config: dict) -> dict:
    for key, value in DEFAULT_CONFIG.items():
        config.setdefault(key, copy.deepcopy(value))
    return config


def load_config(repo_root: Path) -> dict:
    """Read the repository settings.

    A missing file is written out with the defaults. An unreadable or
    malformed file is left untouched and the defaults are returned.

    Args:
        repo_root: The root directory of the git repository.

    Returns:
        Settings dictionary with every default section present.
    """
    config_file = get_config_file(repo_root)
    if not config_file.exists():
        save_config(repo_root, DEFAULT_CONFIG)
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        data = yaml.safe_load(config_file.read_text())
    except (OSError, yaml.YAMLError):
        return copy.deepcopy(DEFAULT_CONFIG)
    return _with_defaults(data if isinstance(data, dict) else {})


def save_config(repo_root: Path, config: dict) -> None:
    """Write the repository settings, creating .hunkplan/ if needed."""
    config_file = get_config_file(repo_root)
    config_file.parent.mkdir(exist_ok=True)
    config_file.write_text(
        yaml.safe_dump(config, default_flow_style=False, sort_keys=False, allow_unicode=True)
    )


def _update(repo_root: Path, change: Callable[[dict], bool]) -> bool:
    """Apply ``change`` to the stored settings; save only when it reports a change."""
    config = load_config(repo_root)
    changed = change(config)
    if changed:
        save_config(repo_root, config)
    return changed


def get_ignore_patterns(repo_root: Path) -> list[str]:
    """Return the glob patterns excluded from the planned diff."""
    return load_config(repo_root)["ignore"] or []


def add_ignore_pattern(repo_root: Path, pattern: str) -> None:
    """Append a glob such as ``*.log`` or ``build/*``; duplicates are skipped."""

    def _add(config: dict) -> bool:
        patterns = config["ignore"] or []
        if pattern in patterns:
            return False
        config["ignore"] = patterns + [pattern]
        return True

    _update(repo_root, _add)


def remove_ignore_pattern(repo_root: Path, pattern: str) -> bool:
    """Drop a pattern. Returns False when it was not configured."""

    def _remove(config: dict) -> bool:
        patterns = config["ignore"] or []
        if pattern not in patterns:
            return False
        config["ignore"] = [p for p in patterns if p != pattern]
        return True

    return _update(repo_root, _remove)


def get_repo_planner_config(repo_root: Path) -> dict:
    """Return the ``planner:`` overrides of this repository (possibly empty)."""
    return load_config(repo_root).get("planner") or {}
