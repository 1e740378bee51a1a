"""Configuration for the ``fetchless`` command: XDG paths, atomic writes, precedence.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.fetchless/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **User config** -- one :class:`~fetchless.models.GlobalConfig` JSON file,
  read by :func:`load_global_config` and written by
  :func:`save_global_config`.
* **Precedence resolution** -- :func:`resolve_config` layers the project
  file ``./fetchless.json``, environment variables and CLI flags over the
  user config.

Library users configure :class:`~fetchless.client.CachingClient` directly
with a :class:`~fetchless.models.ClientConfig`; nothing here is read
implicitly by the library.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from fetchless.exceptions import ConfigError
from fetchless.models import GlobalConfig

_APP_NAME = "fetchless"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "fetchless.json"

ENV_STRATEGY = "FETCHLESS_STRATEGY"
ENV_MAX_AGE = "FETCHLESS_MAX_AGE"
ENV_CACHE_DIR = "FETCHLESS_CACHE_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _fallback_base_dir() -> Path:
    """Base directory on macOS and Windows."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_dir(env_var: str, default_segments: tuple[str, ...], fallback: str) -> Path:
    """Resolve and create an application directory.

    On XDG platforms this is ``$<env_var>/fetchless`` (or the default
    segments under ``$HOME``); elsewhere ``~/.fetchless/<fallback>``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get(env_var, "")
        base = Path(env_value) if env_value else Path.home().joinpath(*default_segments)
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / fallback if fallback else _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/fetchless/`` (default ``~/.config/fetchless/``).
    On macOS/Windows: ``~/.fetchless/``.
    """
    return _xdg_dir("XDG_CONFIG_HOME", (".config",), "")


def get_cache_dir() -> Path:
    """Return the cache directory holding the on-disk response store.

    On Linux/BSD: ``$XDG_CACHE_HOME/fetchless/`` (default ``~/.cache/fetchless/``).
    On macOS/Windows: ``~/.fetchless/cache/``.
    """
    return _xdg_dir("XDG_CACHE_HOME", (".cache",), "cache")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/fetchless/`` (default ``~/.local/share/fetchless/``).
    On macOS/Windows: ``~/.fetchless/logs/``.
    """
    return _xdg_dir("XDG_DATA_HOME", (".local", "share"), "logs")


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* through a temp file in the same directory and a rename.

    The temp file is removed if anything fails before the rename.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    ) as handle:
        tmp_path = Path(handle.name)
        try:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


# --- User config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def _validate(data: Any, label: str) -> GlobalConfig:
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {label}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Load the user config, or the defaults when none has been saved.

    Raises:
        ConfigError: If the file holds invalid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    return _validate(_read_json(path, "user config"), f"user config at {path}")


def save_global_config(config: GlobalConfig) -> None:
    """Persist *config* atomically as the user config."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./fetchless.json`` from the working directory.

    The file holds a partial :class:`~fetchless.models.GlobalConfig`, e.g.
    ``{"client": {"max_age": 60}}``.

    Returns:
        The parsed object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_strategy: Optional[str] = None,
    cli_max_age: Optional[float] = None,
    cli_format: Optional[str] = None,
    cli_store_dir: Optional[str] = None,
) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``FETCHLESS_STRATEGY``,
           ``FETCHLESS_MAX_AGE``, ``FETCHLESS_CACHE_DIR``)
        3. Project config (``./fetchless.json``)
        4. User config (``~/.config/fetchless/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer is invalid.
    """
    data = load_global_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    env_strategy = os.environ.get(ENV_STRATEGY)
    if env_strategy:
        data["client"]["strategy"] = env_strategy
    env_max_age = os.environ.get(ENV_MAX_AGE)
    if env_max_age:
        data["client"]["max_age"] = env_max_age
    env_cache_dir = os.environ.get(ENV_CACHE_DIR)
    if env_cache_dir:
        data["store"]["directory"] = env_cache_dir

    if cli_strategy is not None:
        data["client"]["strategy"] = cli_strategy
    if cli_max_age is not None:
        data["client"]["max_age"] = cli_max_age
    if cli_store_dir is not None:
        data["store"]["directory"] = cli_store_dir
    if cli_format is not None:
        data["output"]["format"] = cli_format

    return _validate(data, "configuration")


def get_store_dir(config: GlobalConfig) -> Path:
    """Directory of the on-disk response store for *config*."""
    if config.store.directory:
        return Path(config.store.directory).expanduser()
    return get_cache_dir()
