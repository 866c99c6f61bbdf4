"""Terminal output for the CLI.

Data (signing results, schemas, tables) goes to stdout so that it can be
captured, e.g. ``export AUTH="$(reqauth --plain sign basic ...)"``.
Everything else (status, warnings, errors, log records) goes to stderr.
Colour is off under ``NO_COLOR``, ``TERM=dumb`` or ``--no-color``.

Commands do not hold an :class:`OutputManager`; they call the module-level
helpers (:func:`format_data`, :func:`error`, ...), which delegate to the
manager installed by the root callback through :func:`set_output`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

_LOGGER_NAME = "reqauth"
_HANDLER_MARK = "_reqauth_cli"

# kind -> (prefix, prefix style, message style, hidden by --quiet)
_DIAGNOSTICS: dict[str, tuple[str, str, str, bool]] = {
    "info": ("", "", "", True),
    "success": ("", "", "green", True),
    "warning": ("Warning: ", "yellow", "", False),
    "error": ("Error: ", "bold red", "", False),
    "suggest": ("→ ", "dim", "dim", True),
    "debug": ("[debug] ", "dim", "dim", False),
}


class OutputFormat(str, Enum):
    """Data formats. ``AUTO`` picks ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """``NO_COLOR`` set to anything, or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [str(item) for item in data]
    return [str(data)]


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class OutputManager:
    """Writes data to stdout and diagnostics to stderr in one format.

    Args:
        format: Data format. ``AUTO`` is resolved here, once.
        no_color: Disable colour even on a terminal.
        quiet: Hide info, success and suggestion messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format is OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        return self._stderr

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_data(self, data: Any, plain_lines: Optional[list[str]] = None) -> None:
        """Print a JSON-serialisable value.

        JSON mode prints indented JSON and Rich mode highlights the same
        text. Plain mode prints *plain_lines* when given, otherwise one
        ``key<TAB>value`` line per dict entry (one line per item for lists).
        """
        if self._format is OutputFormat.PLAIN:
            for line in _plain_lines(data) if plain_lines is None else plain_lines:
                self.print_data(line)
        elif self._format is OutputFormat.JSON:
            self.print_data(_to_json(data))
        else:
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, a JSON list of objects, or TSV.

        *title* is only used by the Rich table.
        """
        if self._format is OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format is OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return
        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def _diagnose(self, kind: str, message: str) -> None:
        prefix, prefix_style, style, quietable = _DIAGNOSTICS[kind]
        if quietable and self._quiet:
            return
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(Text.assemble((prefix, prefix_style), (message, style)))

    def info(self, message: str) -> None:
        self._diagnose("info", message)

    def success(self, message: str) -> None:
        self._diagnose("success", message)

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnose("warning", message)

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnose("error", message)

    def suggest(self, message: str) -> None:
        """A next-step hint, usually the command to run."""
        self._diagnose("suggest", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnose("debug", message)


def configure_logging(output: OutputManager, level: str = "WARNING") -> None:
    """Send ``reqauth.*`` log records to stderr through a :class:`RichHandler`.

    The handler shares *output*'s stderr console. ``--verbose`` forces
    ``DEBUG``; otherwise *level* applies. A handler installed by an earlier
    call is replaced, and records stop propagating to the root logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for stale in [h for h in logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        logger.removeHandler(stale)

    handler = RichHandler(
        console=output.stderr_console,
        show_time=False,
        show_path=output.is_verbose,
        markup=False,
        rich_tracebacks=output.is_verbose,
    )
    setattr(handler, _HANDLER_MARK, True)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if output.is_verbose else level.upper())
    logger.propagate = False


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager; a default one is created on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def format_data(data: Any, plain_lines: Optional[list[str]] = None) -> None:
    get_output().format_data(data, plain_lines)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
