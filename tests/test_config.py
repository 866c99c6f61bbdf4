"""Tests for reqauth.config: XDG paths, atomic writes, profiles, precedence, credentials."""

from __future__ import annotations

import json
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from reqauth.config import (
    _atomic_write,
    delete_profile,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    profile_exists,
    resolve_config,
    resolve_credential,
    resolve_profile_values,
    save_global_config,
    save_profile,
)
from reqauth.exceptions import ConfigError
from reqauth.models import GlobalConfig, HttpConfig, OAuth2Config, SigningProfile


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _profile(name: str = "work", strategy: str = "basic", **kwargs: Any) -> SigningProfile:
    return SigningProfile(name=name, strategy=strategy, **kwargs)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    @pytest.mark.parametrize(
        ("func", "env_var", "segments"),
        [
            (get_config_dir, "XDG_CONFIG_HOME", (".config",)),
            (get_cache_dir, "XDG_CACHE_HOME", (".cache",)),
            (get_data_dir, "XDG_DATA_HOME", (".local", "share")),
        ],
    )
    def test_default_under_home(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, func, env_var, segments
    ) -> None:
        monkeypatch.setattr("reqauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv(env_var, raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = func()
        assert result == tmp_path.joinpath(*segments, "reqauth")
        assert result.is_dir()

    @pytest.mark.parametrize(
        ("func", "env_var"),
        [
            (get_config_dir, "XDG_CONFIG_HOME"),
            (get_cache_dir, "XDG_CACHE_HOME"),
            (get_data_dir, "XDG_DATA_HOME"),
        ],
    )
    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, func, env_var) -> None:
        custom = tmp_path / "custom"
        monkeypatch.setattr("reqauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv(env_var, str(custom))

        assert func() == custom / "reqauth"

    def test_empty_env_uses_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("reqauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", "")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".config" / "reqauth"


class TestFallbackPaths:
    @pytest.fixture(autouse=True)
    def _non_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("reqauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

    def test_config_dir(self, tmp_path: Path) -> None:
        assert get_config_dir() == tmp_path / ".reqauth"

    def test_cache_dir(self, tmp_path: Path) -> None:
        assert get_cache_dir() == tmp_path / ".reqauth" / "cache"

    def test_data_dir(self, tmp_path: Path) -> None:
        assert get_data_dir() == tmp_path / ".reqauth" / "logs"


class TestProfilesDir:
    def test_under_config_dir(self, isolated_config: Path) -> None:
        result = get_profiles_dir()
        assert result == isolated_config / "config" / "reqauth" / "profiles"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_content(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "file.json"
        _atomic_write(target, '{"a": 1}')
        assert target.read_text(encoding="utf-8") == '{"a": 1}'

    def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        target.write_text("old", encoding="utf-8")
        _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "new"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        _atomic_write(target, "data")
        assert [p.name for p in tmp_path.iterdir()] == ["file.json"]

    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        _atomic_write(target, "data", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failed_replace_cleans_up(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        target.write_text("original", encoding="utf-8")
        with patch("reqauth.config.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["file.json"]


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.http.timeout == 30
        assert config.oauth2.redirect_timeout_seconds == 300
        assert config.cache.enabled is True
        assert config.log_level == "WARNING"

    def test_save_and_load(self, isolated_config: Path) -> None:
        config = GlobalConfig(
            default_profile="work",
            http=HttpConfig(timeout=5, verify_ssl=False),
            oauth2=OAuth2Config(redirect_timeout_seconds=60, callback_port=8765),
        )
        save_global_config(config)
        assert load_global_config() == config

    def test_file_location(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_profile="x"))
        path = isolated_config / "config" / "reqauth" / "config.json"
        assert json.loads(path.read_text(encoding="utf-8"))["default_profile"] == "x"

    def test_invalid_json(self, isolated_config: Path) -> None:
        path = get_config_dir() / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_invalid_values(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"http": {"timeout": "soon"}})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_save_and_load(self, isolated_config: Path) -> None:
        profile = _profile(
            values={"username": "alice"},
            secrets={"password": "env:WORK_PASSWORD"},
            context_id="ctx",
        )
        save_profile(profile)
        loaded = load_profile("work")
        assert loaded == profile

    def test_saved_with_restricted_permissions(self, isolated_config: Path) -> None:
        save_profile(_profile())
        path = get_profiles_dir() / "work.json"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_extra_fields_preserved(self, isolated_config: Path) -> None:
        _write_json(
            get_profiles_dir() / "extra.json",
            {"name": "extra", "strategy": "jwt", "note": "kept"},
        )
        assert load_profile("extra").model_extra == {"note": "kept"}

    def test_list_sorted(self, isolated_config: Path) -> None:
        for name in ["zeta", "alpha", "mid"]:
            save_profile(_profile(name))
        assert list_profiles() == ["alpha", "mid", "zeta"]

    def test_list_empty(self, isolated_config: Path) -> None:
        assert list_profiles() == []

    def test_exists_and_delete(self, isolated_config: Path) -> None:
        save_profile(_profile())
        assert profile_exists("work") is True
        delete_profile("work")
        assert profile_exists("work") is False

    def test_delete_missing(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            delete_profile("ghost")

    def test_load_missing(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="Profile 'ghost' not found"):
            load_profile("ghost")

    def test_load_invalid(self, isolated_config: Path) -> None:
        _write_json(get_profiles_dir() / "broken.json", {"name": "broken"})
        with pytest.raises(ConfigError, match="Invalid profile 'broken'"):
            load_profile("broken")


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_loaded_from_cwd(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "reqauth.json", {"default_profile": "proj"})
        assert load_project_config() == {"default_profile": "proj"}

    def test_invalid(self, isolated_config: Path) -> None:
        (isolated_config / "reqauth.json").write_text("nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture(autouse=True)
    def _profiles(self, isolated_config: Path) -> None:
        for name in ["global", "project", "env", "cli"]:
            save_profile(_profile(name))

    def test_no_profile(self) -> None:
        config, profile = resolve_config()
        assert config == GlobalConfig()
        assert profile is None

    def test_global_default(self) -> None:
        save_global_config(GlobalConfig(default_profile="global"))
        assert resolve_config()[1].name == "global"

    def test_project_beats_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_profile="global"))
        _write_json(isolated_config / "reqauth.json", {"default_profile": "project"})
        assert resolve_config()[1].name == "project"

    def test_env_beats_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "reqauth.json", {"default_profile": "project"})
        monkeypatch.setenv("REQAUTH_PROFILE", "env")
        assert resolve_config()[1].name == "env"

    def test_cli_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQAUTH_PROFILE", "env")
        assert resolve_config("cli")[1].name == "cli"

    def test_unknown_profile(self) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_config("ghost")


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_SECRET", "s3cret")
        assert resolve_credential("env:MY_SECRET") == "s3cret"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MY_SECRET", raising=False)
        with pytest.raises(ConfigError, match="MY_SECRET"):
            resolve_credential("env:MY_SECRET")

    def test_env_empty_value_allowed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_SECRET", "")
        assert resolve_credential("env:MY_SECRET") == ""

    def test_file(self, tmp_path: Path) -> None:
        secret = tmp_path / "secret.txt"
        secret.write_text("  from-file\n", encoding="utf-8")
        assert resolve_credential(f"file:{secret}") == "from-file"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'nope'}")

    def test_literal(self) -> None:
        assert resolve_credential("literal:a:b c") == "a:b c"

    def test_prompt_tty(self) -> None:
        with patch("reqauth.config.sys.stdin") as stdin, patch(
            "reqauth.config.getpass.getpass", return_value="typed"
        ) as getpass:
            stdin.isatty.return_value = True
            assert resolve_credential("prompt", label="password") == "typed"
        getpass.assert_called_once_with("Enter password: ")

    def test_prompt_without_tty(self) -> None:
        with patch("reqauth.config.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            with pytest.raises(ConfigError, match="not a TTY"):
                resolve_credential("prompt")

    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("vault:path")


class TestResolveProfileValues:
    def test_secrets_merged_over_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PW", "from-env")
        profile = _profile(
            values={"username": "alice", "password": "stale"},
            secrets={"password": "env:PW"},
        )
        assert resolve_profile_values(profile) == {"username": "alice", "password": "from-env"}

    def test_values_not_mutated(self) -> None:
        profile = _profile(values={"username": "alice"}, secrets={"password": "literal:x"})
        resolve_profile_values(profile)
        assert profile.values == {"username": "alice"}

    def test_missing_secret_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        profile = _profile(secrets={"password": "env:NOT_SET_ANYWHERE"})
        with pytest.raises(ConfigError):
            resolve_profile_values(profile)

