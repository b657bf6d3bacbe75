# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Console output helpers shared by the CLI and the session layer."""

from __future__ import annotations

import logging
import shlex

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape


class Output:
    """Thin facade over two rich consoles (stdout and stderr).

    ``detail`` messages are only printed in verbose mode; everything
    that degrades silently reports through it.
    """

    def __init__(self) -> None:
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)
        self.verbose = False

    def info(self, msg: str) -> None:
        self.console.print(f"[magenta]{msg}[/magenta]")

    def dim(self, msg: str) -> None:
        self.console.print(f"[dim]{msg}[/dim]")

    def success(self, msg: str) -> None:
        self.console.print(f"[green]{msg}[/green]")

    def warning(self, msg: str) -> None:
        self.err_console.print(f"[yellow]{msg}[/yellow]")

    def error(self, msg: str) -> None:
        self.err_console.print(f"[bold red]Error:[/bold red] [red]{msg}[/red]")

    def hint(self, msg: str) -> None:
        self.err_console.print(f"[yellow]Hint:[/yellow] {msg}")

    def detail(self, msg: str) -> None:
        if self.verbose:
            self.console.print(f"[magenta]{msg}[/magenta]")

    def command(self, argv: list[str]) -> None:
        """Print a docker command with one flag per line."""
        groups: list[list[str]] = []
        seen_flag = False
        for arg in argv:
            if arg.startswith("-"):
                seen_flag = True
                groups.append([arg])
            elif not groups or not seen_flag:
                if groups:
                    groups[-1].append(arg)
                else:
                    groups.append([arg])
            elif len(groups[-1]) == 1 and groups[-1][0].startswith("-") and "=" not in groups[-1][0]:
                # Flag value
                groups[-1].append(arg)
            else:
                groups.append([arg])
        body = " \\\n    ".join(escape(shlex.join(g)) for g in groups)
        self.console.print(f"[bright_cyan]{body}[/bright_cyan]")


out = Output()


def configure_logging(verbose: bool) -> None:
    """Route stdlib logging through rich; DEBUG when verbose."""
    out.verbose = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=out.err_console, show_path=False)],
        force=True,
    )
