"""Runtime configuration: environment settings, XDG paths, and credentials.

Plugins take no CLI flags beyond the mode argument, so all process-level
configuration comes from the environment:

* **Runtime settings** -- :func:`load_settings` reads the ``ACTIONPACK_*``
  variables listed in :data:`SETTINGS_ENV` into a
  :class:`~actionpack.models.RuntimeSettings`.
* **Directory layout** -- :func:`get_data_dir` is XDG compliant on
  Linux/BSD and ``~/.actionpack/`` elsewhere. Crash logs live under it.
* **Credential resolution** -- :func:`resolve_credential` reads secrets from
  ``env:VAR`` or ``file:/path`` sources, and :func:`credential_from`
  implements the usual "request parameter, else environment" lookup.
"""

from __future__ import annotations

import logging
import os
import platform
import traceback
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from actionpack.exceptions import ConfigError
from actionpack.models import EnvOption, RuntimeSettings

logger = logging.getLogger(__name__)

_APP_NAME = "actionpack"

SETTINGS_ENV: tuple[EnvOption, ...] = (
    EnvOption(
        name="ACTIONPACK_TIMEOUT",
        description="Default deadline in seconds when a request has no timeout",
    ),
    EnvOption(
        name="ACTIONPACK_LOG_LEVEL",
        description="Level of diagnostics written to stderr",
        default="WARNING",
    ),
    EnvOption(
        name="ACTIONPACK_HTTP_RETRIES",
        description="Retries on HTTP connection errors and 5xx responses",
        default="2",
    ),
    EnvOption(
        name="ACTIONPACK_NO_CRASH_LOG",
        description="Set to disable crash logs for unexpected handler faults",
    ),
)
"""Environment variables every plugin recognises."""

_FIELD_BY_ENV = {
    "ACTIONPACK_TIMEOUT": "default_timeout",
    "ACTIONPACK_LOG_LEVEL": "log_level",
    "ACTIONPACK_HTTP_RETRIES": "http_retries",
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


# --- Settings ---


def load_settings(environ: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """Build :class:`RuntimeSettings` from the environment.

    Empty variables are treated as unset.

    Args:
        environ: Mapping to read instead of ``os.environ``.

    Returns:
        The validated settings.

    Raises:
        ConfigError: If a variable holds a value of the wrong type or out of
            range (e.g. ``ACTIONPACK_TIMEOUT=-1``).
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    for var, field_name in _FIELD_BY_ENV.items():
        value = env.get(var, "")
        if value:
            data[field_name] = value
    if env.get("ACTIONPACK_NO_CRASH_LOG"):
        data["crash_log"] = False

    level = str(data.get("log_level", "WARNING")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(
            f"Invalid ACTIONPACK_LOG_LEVEL '{data['log_level']}': "
            f"expected one of {', '.join(sorted(_LOG_LEVELS))}"
        )
    data["log_level"] = level

    try:
        return RuntimeSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid runtime settings: {_first_error(exc)}") from exc


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field_name = ".".join(str(p) for p in err.get("loc", ()))
    env_name = next(
        (var for var, name in _FIELD_BY_ENV.items() if name == field_name), field_name
    )
    return f"{env_name}: {err.get('msg', 'invalid value')}"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def get_data_dir() -> Path:
    """Return the data directory, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/actionpack/`` (default
    ``~/.local/share/actionpack/``). Elsewhere: ``~/.actionpack/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_crash_log_dir() -> Path:
    """Return ``<data_dir>/logs``, creating it if necessary."""
    path = get_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_crash_log(label: str, exc: BaseException) -> Optional[str]:
    """Write the traceback of *exc* under :func:`get_crash_log_dir`.

    Args:
        label: Short name included in the file name (an action or command).
        exc: The unexpected exception.

    Returns:
        The log file path, or ``None`` when it cannot be written.
    """
    try:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        log_path = get_crash_log_dir() / f"crash-{label}-{timestamp}.log"
        log_path.write_text(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            encoding="utf-8",
        )
    except OSError as err:
        logger.warning("Could not write crash log: %s", err)
        return None
    return str(log_path)


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source cannot be resolved.
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


def credential_from(
    params: Mapping[str, Any],
    key: str,
    env_var: str,
) -> str:
    """Return a credential from a request parameter, falling back to the environment.

    A parameter value of the form ``env:VAR`` or ``file:/path`` is resolved
    through :func:`resolve_credential`; any other non-empty string is used as
    the credential itself.

    Raises:
        ConfigError: If neither the parameter nor *env_var* supplies a value.
    """
    value = params.get(key)
    if isinstance(value, str) and value:
        if value.startswith(("env:", "file:")):
            return resolve_credential(value)
        return value
    env_value = os.environ.get(env_var)
    if env_value:
        return env_value
    raise ConfigError(f"{key} is required (pass '{key}' or set {env_var})")
