"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for qbo-connect:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.qbo-connect/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Settings** -- A single :class:`~qboconnect.models.Settings` JSON file
  holding the OAuth client configuration and storage options.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and the settings file.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or literal values.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from qboconnect.exceptions import ConfigError
from qboconnect.models import Settings

_APP_NAME = "qbo-connect"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "qbo-connect.json"

_ENV_OVERRIDES = {
    "QBO_CONNECT_CLIENT_ID": "client_id",
    "QBO_CONNECT_CALLBACK_URI": "callback_uri",
    "QBO_CONNECT_SANDBOX": "sandbox",
}

_TRUTHY = {"1", "true", "yes", "on"}


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/qbo-connect/`` (default ``~/.config/qbo-connect/``).
    On macOS/Windows: ``~/.qbo-connect/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory (diskcache store backend), creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/qbo-connect/`` (default ``~/.cache/qbo-connect/``).
    On macOS/Windows: ``~/.qbo-connect/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored connection, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/qbo-connect/`` (default ``~/.local/share/qbo-connect/``).
    On macOS/Windows: ``~/.qbo-connect/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given it is applied to the temp file before any content is written.
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
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in the except branch
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


# --- Settings ---


def _settings_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> Settings:
    """Load the settings file from the XDG config directory.

    Returns:
        The deserialised :class:`~qboconnect.models.Settings`, or a default
        instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _settings_path()
    if not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist the settings atomically to disk."""
    data = settings.model_dump(mode="json")
    _atomic_write(_settings_path(), json.dumps(data, indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./qbo-connect.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(**cli_overrides: Any) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (keyword arguments whose value is not ``None``)
        2. Environment variables (``QBO_CONNECT_CLIENT_ID``,
           ``QBO_CONNECT_CALLBACK_URI``, ``QBO_CONNECT_SANDBOX``)
        3. Project config (``./qbo-connect.json``)
        4. User settings (``~/.config/qbo-connect/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer is invalid.
    """
    merged = load_settings().model_dump()

    project = load_project_config()
    if project:
        merged.update(project)

    for env_var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            merged[field] = value.strip().lower() in _TRUTHY if field == "sandbox" else value

    merged.update({k: v for k, v in cli_overrides.items() if v is not None})

    try:
        return Settings.model_validate(merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``; empty when unset
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used literally

    An unset environment variable resolves to an empty string so that the
    missing secret is reported by the OAuth flow as a configuration error
    instead of aborting here.

    Raises:
        ConfigError: If a ``file:`` source cannot be read.
    """
    if source.startswith("env:"):
        return os.environ.get(source[4:], "")

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return source
