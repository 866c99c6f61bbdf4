"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- format_data in JSON, plain and rich modes
- print_table in all three modes
- configure_logging routing library records to stderr
- Global instance management and convenience functions
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from reqauth import output as output_module
from reqauth.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("reqauth.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True with colour allowed."""
    monkeypatch.setattr("reqauth.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


@pytest.fixture()
def plain(non_tty):
    return OutputManager(format=OutputFormat.PLAIN)


# ------------------------------------------------------------------ #
# Format resolution and colour
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_rich_when_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_plain_when_tty_but_no_color(self, tty, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert OutputManager().format == OutputFormat.PLAIN

    def test_no_color_flag(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_kept(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout / stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    def test_print_data_to_stdout(self, capfd, plain):
        plain.print_data("Authorization: Basic Og==")
        out, err = capfd.readouterr()
        assert out == "Authorization: Basic Og==\n"
        assert err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("message")
        out, err = capfd.readouterr()
        assert out == ""
        assert "message" in err

    def test_prefixes_without_color(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.warning("careful")
        mgr.error("broken")
        mgr.suggest("try this")
        err = capfd.readouterr().err
        assert "Warning: careful" in err
        assert "Error: broken" in err
        assert "→ try this" in err


class TestQuietAndVerbose:
    def test_quiet_suppresses_info_success_suggest(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, quiet=True)
        mgr.info("i")
        mgr.success("s")
        mgr.suggest("x")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_warning_error_and_data(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
        mgr.warning("w")
        mgr.error("e")
        mgr.print_data("d")
        out, err = capfd.readouterr()
        assert out == "d\n"
        assert "w" in err and "e" in err

    def test_debug_hidden_by_default(self, capfd, plain):
        plain.debug("hidden")
        assert capfd.readouterr().err == ""

    def test_debug_shown_with_verbose(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, verbose=True, no_color=True)
        mgr.debug("visible")
        assert "[debug] visible" in capfd.readouterr().err


# ------------------------------------------------------------------ #
# format_data
# ------------------------------------------------------------------ #


class TestFormatData:
    def test_json(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.format_data({"headers": [{"name": "Authorization", "value": "Basic Og=="}]})
        out = capfd.readouterr().out
        assert json.loads(out) == {"headers": [{"name": "Authorization", "value": "Basic Og=="}]}
        assert "\n  " in out

    def test_json_ignores_plain_lines(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.format_data({"a": 1}, plain_lines=["ignored"])
        assert json.loads(capfd.readouterr().out) == {"a": 1}

    def test_plain_dict_default(self, capfd, plain):
        plain.format_data({"name": "basic", "label": "Basic Auth"})
        assert capfd.readouterr().out == "name\tbasic\nlabel\tBasic Auth\n"

    def test_plain_list_default(self, capfd, plain):
        plain.format_data(["a", "b"])
        assert capfd.readouterr().out == "a\nb\n"

    def test_plain_scalar_default(self, capfd, plain):
        plain.format_data(42)
        assert capfd.readouterr().out == "42\n"

    def test_plain_lines_override(self, capfd, plain):
        plain.format_data({"ignored": True}, plain_lines=["Authorization: Basic Og=="])
        assert capfd.readouterr().out == "Authorization: Basic Og==\n"

    def test_rich_produces_output(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH)
        mgr.format_data({"key": "value"})
        out = capfd.readouterr().out
        assert "key" in out and "value" in out

    def test_unicode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.format_data({"user": "ümit"})
        assert "ümit" in capfd.readouterr().out


# ------------------------------------------------------------------ #
# print_table
# ------------------------------------------------------------------ #


class TestPrintTable:
    HEADERS = ["Name", "Label"]
    ROWS = [["basic", "Basic Auth"], ["jwt", "JSON Web Token"]]

    def test_json_mode(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(self.HEADERS, self.ROWS)
        assert json.loads(capfd.readouterr().out) == [
            {"Name": "basic", "Label": "Basic Auth"},
            {"Name": "jwt", "Label": "JSON Web Token"},
        ]

    def test_plain_mode(self, capfd, plain):
        plain.print_table(self.HEADERS, self.ROWS, title="ignored")
        assert capfd.readouterr().out == "Name\tLabel\nbasic\tBasic Auth\njwt\tJSON Web Token\n"

    def test_rich_mode(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH).print_table(self.HEADERS, self.ROWS, title="Strategies")
        out = capfd.readouterr().out
        assert "Strategies" in out
        assert "JSON Web Token" in out

    def test_empty_rows(self, capfd, plain):
        plain.print_table(self.HEADERS, [])
        assert capfd.readouterr().out == "Name\tLabel\n"


# ------------------------------------------------------------------ #
# Logging
# ------------------------------------------------------------------ #


def _cli_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger("reqauth").handlers if getattr(h, "_reqauth_cli", False)]


class TestConfigureLogging:
    def test_installs_rich_handler(self, plain):
        configure_logging(plain)
        handlers = _cli_handlers()
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)
        logger = logging.getLogger("reqauth")
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_replaces_previous_handler(self, plain):
        configure_logging(plain)
        configure_logging(plain, "info")
        assert len(_cli_handlers()) == 1
        assert logging.getLogger("reqauth").level == logging.INFO

    def test_verbose_forces_debug(self, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, verbose=True)
        configure_logging(mgr, "ERROR")
        assert logging.getLogger("reqauth").level == logging.DEBUG

    def test_records_go_to_stderr(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        configure_logging(mgr)
        logging.getLogger("reqauth.strategies.oauth2.strategy").warning("refresh failed")
        out, err = capfd.readouterr()
        assert out == ""
        assert "refresh failed" in err

    def test_level_filters_records(self, capfd, plain):
        configure_logging(plain, "ERROR")
        logging.getLogger("reqauth.auth.manager").warning("quiet please")
        assert "quiet please" not in capfd.readouterr().err


# ------------------------------------------------------------------ #
# Global instance and convenience functions
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_then_reset(self, plain):
        set_output(plain)
        assert get_output() is plain
        reset_output()
        assert get_output() is not plain


class TestConvenienceFunctions:
    @pytest.fixture(autouse=True)
    def _install(self, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True))

    def test_data_helpers(self, capfd):
        output_module.print_data("raw")
        output_module.format_data({"k": "v"})
        output_module.print_table(["A"], [["1"]])
        assert capfd.readouterr().out == "raw\nk\tv\nA\n1\n"

    def test_diagnostic_helpers(self, capfd):
        output_module.info("i-msg")
        output_module.success("s-msg")
        output_module.warning("w-msg")
        output_module.error("e-msg")
        output_module.suggest("n-msg")
        output_module.debug("d-msg")
        err = capfd.readouterr().err
        for text in ["i-msg", "s-msg", "w-msg", "e-msg", "n-msg", "d-msg"]:
            assert text in err
