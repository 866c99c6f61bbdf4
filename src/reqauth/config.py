"""On-disk state for reqauth: directories, global config, signing profiles.

Layout on Linux/BSD follows the XDG base directories::

    $XDG_CONFIG_HOME/reqauth/config.json         GlobalConfig
    $XDG_CONFIG_HOME/reqauth/profiles/<name>.json SigningProfile (mode 0600)
    $XDG_CACHE_HOME/reqauth/tokens/              OAuth2 token store
    $XDG_DATA_HOME/reqauth/logs/                 crash logs

Other platforms keep everything under ``~/.reqauth``. A ``reqauth.json``
in the working directory may name a project default profile.

Profiles never need to hold secrets: each secret is stored as a *source*
(``env:VAR``, ``file:/path``, ``prompt`` or ``literal:value``) and read by
:func:`resolve_credential` when the profile is used.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from reqauth.exceptions import ConfigError
from reqauth.models import GlobalConfig, SigningProfile

_APP_NAME = "reqauth"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "reqauth.json"
PROFILE_ENV_VAR = "REQAUTH_PROFILE"

# kind -> (XDG variable, default segments under $HOME, subdirectory of ~/.reqauth)
_DIRS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}

_M = TypeVar("_M", bound=BaseModel)


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, segments, fallback = _DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or str(Path.home().joinpath(*segments))
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback:
            path = path / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` and ``profiles/`` (created on demand)."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory holding the OAuth2 token store (created on demand)."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    """Directory holding crash logs (created on demand)."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in one rename.

    The temporary file lives next to *path* so that :func:`os.replace`
    stays on one filesystem. *mode* is applied before any byte is written,
    so a secret file is never briefly world-readable. On failure the
    temporary file is removed and the original is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if mode is not None:
            os.chmod(tmp_name, mode)
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(data)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _read_model(path: Path, model: type[_M], what: str) -> _M:
    data = _read_json(path, what)
    try:
        return model.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _dump(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), indent=2) + "\n"


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read ``config.json``; a missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    return _read_model(path, GlobalConfig, "global config")


def save_global_config(config: GlobalConfig) -> None:
    _atomic_write(_global_config_path(), _dump(config))


# --- Signing profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def _require_profile(name: str) -> Path:
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return path


def list_profiles() -> list[str]:
    return sorted(entry.stem for entry in get_profiles_dir().glob("*.json") if entry.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> SigningProfile:
    """Load the profile called *name*.

    Raises:
        ConfigError: If it does not exist or cannot be parsed.
    """
    return _read_model(_require_profile(name), SigningProfile, f"profile '{name}'")


def save_profile(profile: SigningProfile) -> None:
    """Write *profile*, replacing any profile of the same name.

    Files are created with mode ``0o600`` since ``literal:`` secret sources
    keep the secret in the file.
    """
    _atomic_write(_profile_path(profile.name), _dump(profile), mode=0o600)


def delete_profile(name: str) -> None:
    """Remove the profile called *name*.

    Raises:
        ConfigError: If it does not exist.
    """
    _require_profile(name).unlink()


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./reqauth.json`` if present, else return ``None``."""
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


def resolve_config(
    cli_profile: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[SigningProfile]]:
    """Load the global config and pick the active signing profile.

    The first name found wins, in this order: *cli_profile*, the
    ``REQAUTH_PROFILE`` variable, ``default_profile`` in ``./reqauth.json``,
    ``default_profile`` in the global config. No name means no profile.

    Raises:
        ConfigError: If the chosen profile cannot be loaded.
    """
    config = load_global_config()
    project = load_project_config() or {}
    candidates = (
        cli_profile,
        os.environ.get(PROFILE_ENV_VAR),
        project.get("default_profile"),
        config.default_profile,
    )
    name = next((candidate for candidate in candidates if candidate), None)
    return config, load_profile(name) if name else None


# --- Credential sources ---


def _from_env(var_name: str, label: str) -> str:
    value = os.environ.get(var_name)
    if value is None:
        raise ConfigError(f"Environment variable '{var_name}' is not set (source: env:{var_name})")
    return value


def _from_file(location: str, label: str) -> str:
    path = Path(location).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file not found: {path} (source: file:{location})")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


def _from_literal(value: str, label: str) -> str:
    return value


_SOURCE_READERS: dict[str, Callable[[str, str], str]] = {
    "env:": _from_env,
    "file:": _from_file,
    "literal:": _from_literal,
}


def resolve_credential(source: str, label: str = "credential") -> str:
    """Read a secret from its source descriptor.

    ``env:VAR`` reads an environment variable (an empty value is allowed),
    ``file:/path`` reads a file with surrounding whitespace stripped, and
    ``literal:value`` is taken verbatim. ``prompt`` asks on the terminal
    without echo, showing *label*.

    Raises:
        ConfigError: If the source is unknown or cannot be read.
    """
    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(f"Cannot prompt for {label}: stdin is not a TTY (source: prompt)")
        return getpass.getpass(f"Enter {label}: ")
    for prefix, reader in _SOURCE_READERS.items():
        if source.startswith(prefix):
            return reader(source[len(prefix):], label)
    raise ConfigError(f"Unknown credential source format: {source}")


def resolve_profile_values(profile: SigningProfile) -> dict[str, Any]:
    """Return the profile's values with every secret source resolved.

    A resolved secret replaces a literal value of the same name.
    """
    resolved = {name: resolve_credential(source, label=name) for name, source in profile.secrets.items()}
    return {**profile.values, **resolved}
