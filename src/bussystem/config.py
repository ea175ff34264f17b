"""Configuration loading with XDG paths, atomic writes, and precedence resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.bussystem/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **User config** -- ``<config_dir>/config.json``, read by
  :func:`load_user_config` and written atomically by :func:`save_user_config`.
* **Project config** -- ``./bussystem.json`` next to the calling project.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  ``BUS_API_*`` environment variables, project config and user config over
  the built-in defaults and returns an immutable
  :class:`~bussystem.models.Settings`.
* **Credential resolution** -- :func:`resolve_credential` reads the password
  from an env var or a file when the config stores a ``password_source``.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from bussystem.exceptions import ConfigError
from bussystem.models import DEFAULT_CACHE_TIMES, Environment, Settings

logger = logging.getLogger(__name__)

_APP_NAME = "bussystem"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "bussystem.json"

ENV_LOGIN = "BUS_API_LOGIN"
ENV_PASSWORD = "BUS_API_PASSWORD"
ENV_TEST_MODE = "BUS_API_TEST_MODE"
ENV_LANG = "BUS_API_LANG"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}
_PASSWORD_RIVALS = {"password": "password_source", "password_source": "password"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/bussystem/`` (default ``~/.config/bussystem/``).
    On macOS/Windows: ``~/.bussystem/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/bussystem/`` (default ``~/.cache/bussystem/``).
    On macOS/Windows: ``~/.bussystem/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/bussystem/`` (default ``~/.local/share/bussystem/``).
    On macOS/Windows: ``~/.bussystem/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def user_config_path() -> Path:
    """Path to the user config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _read_json_object(path: Path, label: str) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def load_user_config() -> dict[str, Any]:
    """Load the raw user configuration.

    Returns:
        The parsed JSON object, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid JSON object.
    """
    path = user_config_path()
    if not path.is_file():
        return {}
    logger.debug("Loading user config from %s", path)
    return _read_json_object(path, "user config")


def save_user_config(data: dict[str, Any]) -> Path:
    """Persist *data* atomically as the user configuration.

    Returns:
        The path that was written.
    """
    path = user_config_path()
    _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    return path


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./bussystem.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    logger.debug("Loading project config from %s", path)
    return _read_json_object(path, "project config")


# --- Precedence resolution ---


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"Environment variable '{name}' must be a boolean, got {value!r}")


def _merge_layer(target: dict[str, Any], layer: dict[str, Any]) -> None:
    """Merge one config layer into *target*; nested sections merge key by key.

    ``password`` and ``password_source`` are alternatives: a layer that sets
    one of them drops the other inherited from lower layers.
    """
    for key, rival in _PASSWORD_RIVALS.items():
        if key in layer and rival not in layer:
            target.pop(rival, None)
    for key, value in layer.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            merged = dict(target[key])
            merged.update(value)
            target[key] = merged
        else:
            target[key] = value


def _env_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    login = os.environ.get(ENV_LOGIN)
    if login:
        layer["login"] = login
    password = os.environ.get(ENV_PASSWORD)
    if password:
        layer["password"] = password
    test_mode = os.environ.get(ENV_TEST_MODE)
    if test_mode is not None:
        test = _parse_bool(ENV_TEST_MODE, test_mode)
        layer["environment"] = (
            Environment.TEST.value if test else Environment.PRODUCTION.value
        )
    lang = os.environ.get(ENV_LANG)
    if lang:
        layer["lang"] = lang
    return layer


def resolve_settings(
    cli_environment: Optional[Environment] = None,
    cli_lang: Optional[str] = None,
    cli_cache_enabled: Optional[bool] = None,
) -> Settings:
    """Resolve the effective settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_environment``, ``cli_lang``, ``cli_cache_enabled``)
        2. Environment variables (``BUS_API_LOGIN``, ``BUS_API_PASSWORD``,
           ``BUS_API_TEST_MODE``, ``BUS_API_LANG``)
        3. Project config (``./bussystem.json``)
        4. User config (``~/.config/bussystem/config.json``)
        5. Defaults

    ``cache_times`` from any layer is merged over the default table, so a
    config file only needs to list the operations it changes.

    Raises:
        ConfigError: On unreadable files, invalid values, or an unresolvable
            ``password_source``.
    """
    # 5. Defaults
    raw: dict[str, Any] = {"cache_times": dict(DEFAULT_CACHE_TIMES)}
    # 4. User config
    _merge_layer(raw, load_user_config())
    # 3. Project config
    project = load_project_config()
    if project is not None:
        _merge_layer(raw, project)
    # 2. Environment variables
    _merge_layer(raw, _env_layer())
    # 1. CLI flags
    if cli_environment is not None:
        raw["environment"] = cli_environment.value
    if cli_lang is not None:
        raw["lang"] = cli_lang
    if cli_cache_enabled is not None:
        raw["cache"] = {**raw.get("cache", {}), "enabled": cli_cache_enabled}

    password_source = raw.pop("password_source", None)
    if password_source:
        raw["password"] = resolve_credential(password_source)

    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    raise ConfigError(f"Unknown credential source format: {source}")
