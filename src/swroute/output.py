"""Console output for swroute.

Two channels, never mixed:

* **stdout** carries results only: response bodies, cache listings,
  notification dumps.  It stays parseable under ``--json``.
* **stderr** carries everything else.  Status lines, routing decisions,
  cache hits and failures are reported through :func:`info`, :func:`debug`,
  :func:`warning` and :func:`error`; library code logs through these
  functions and never prints.

Rendering follows the terminal: Rich styling on an interactive stdout,
plain text when piped, no colour under ``NO_COLOR``, ``TERM=dumb`` or
``--no-color``.  Diagnostics are built as :class:`rich.text.Text`, so
bracketed text such as ``[cache]`` is printed literally.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """How stdout data is rendered.  ``AUTO`` picks ``RICH`` or ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# level -> (prefix, style, shown under --quiet)
_LEVELS: dict[str, tuple[str, str, bool]] = {
    "info": ("", "", False),
    "success": ("", "green", False),
    "warning": ("Warning: ", "yellow", True),
    "error": ("Error: ", "bold red", True),
    "debug": ("[debug] ", "dim", True),
}


class OutputManager:
    """Renders data to stdout and diagnostics to stderr.

    Args:
        format: Data format; ``AUTO`` resolves from TTY and colour settings.
        no_color: Turn off colour regardless of the environment.
        quiet: Drop ``info`` and ``success`` messages.
        verbose: Show ``debug`` messages.
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
        self._format = _resolve_format(format, self._no_color)

        rich_data = self._format == OutputFormat.RICH
        self._out = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_data)
        self._err = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # --- stdout ---

    def format_response(self, data: Any, content_type: str = "application/json") -> None:
        """Write *data* (dict, list, text or scalar) to stdout.

        *content_type* only matters in Rich mode, where JSON and HTML text
        are syntax highlighted.
        """
        if self._format == OutputFormat.JSON:
            self._write_json(data)
        elif self._format == OutputFormat.PLAIN:
            self._write_plain(data)
        else:
            self._write_rich(data, content_type)

    def print_response(self, response: httpx.Response, source: str) -> None:
        """Report a routed response.

        The status line (``HTTP 200 OK [cache]``) goes to stderr and the
        decoded body, if any, to stdout.
        """
        status = " ".join(
            part for part in (f"HTTP {response.status_code}", response.reason_phrase) if part
        )
        self.info(f"{status} [{source}]")
        body = extract_response_data(response)
        if body is not None:
            self.format_response(body, response.headers.get("content-type", ""))

    def print_data(self, text: str) -> None:
        sys.stdout.write(f"{text}\n")
        sys.stdout.flush()

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout.

        JSON mode emits one object per row keyed by header; plain mode emits
        a tab-separated header line followed by the rows.  The title is only
        drawn in Rich mode.
        """
        if self._format == OutputFormat.JSON:
            self._write_json([dict(zip(headers, row)) for row in rows])
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._out.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        self._diagnostic("info", message)

    def success(self, message: str) -> None:
        self._diagnostic("success", message)

    def warning(self, message: str) -> None:
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        self._diagnostic("error", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic("debug", message)

    def _diagnostic(self, level: str, message: str) -> None:
        prefix, style, always = _LEVELS[level]
        if self._quiet and not always:
            return
        if self._no_color:
            sys.stderr.write(f"{prefix}{message}\n")
            sys.stderr.flush()
            return
        if level == "debug":
            line = Text(f"{prefix}{message}", style=style)
        else:
            line = Text.assemble((prefix, style), (message, style if not prefix else ""))
        self._err.print(line)

    # --- renderers ---

    def _write_json(self, data: Any) -> None:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                self.print_data(data)
                return
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def _write_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            lines = [f"{key}\t{value}" for key, value in data.items()]
        elif isinstance(data, list):
            lines = [
                "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
                for item in data
            ]
        else:
            lines = [str(data)]
        for line in lines:
            self.print_data(line)

    def _write_rich(self, data: Any, content_type: str) -> None:
        if isinstance(data, (dict, list)):
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._out.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        elif isinstance(data, str) and "html" in content_type:
            self._out.print(Syntax(data, "html", theme="monokai", word_wrap=True))
        else:
            self._out.print(str(data), markup=False, highlight=False)


def extract_response_data(response: httpx.Response) -> Any:
    """Return the decoded JSON body, the text body, or ``None`` when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """``NO_COLOR`` set to anything, or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- process-wide instance, installed by the CLI callback ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the current instance; the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any, content_type: str = "application/json") -> None:
    get_output().format_response(data, content_type)


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


def debug(message: str) -> None:
    get_output().debug(message)
