# SPDX-License-Identifier: MIT
"""Quoting helpers for the three syntaxes kiln writes.

- Shell: command arguments run by /bin/sh (``shlex.quote``).
- Ninja: paths on ``build`` lines and values of ``key = value`` lines.
- Makefile depfiles: prerequisites read back by Ninja's depfile parser.

Shell quoting leaves ``=`` alone, so ``--flag=a b`` is written as
``'--flag=a b'`` and parses back to the same single argument.
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Sequence


def quote_arg(arg: str) -> str:
    """Quote one argument for a POSIX shell."""
    return shlex.quote(str(arg))


def join_args(args: Iterable[str]) -> str:
    """Quote and join arguments into one shell command line."""
    return " ".join(quote_arg(a) for a in args)


def format_command(command: str | Sequence[str]) -> str:
    """Render a command: shell lines pass through, argument lists are quoted."""
    if isinstance(command, str):
        return command
    return join_args(command)


def ninja_escape_path(path: str) -> str:
    """Escape a path for a Ninja build line.

    Dollar signs, spaces and colons are significant there.
    """
    return str(path).replace("$", "$$").replace(" ", "$ ").replace(":", "$:")


def ninja_escape_value(value: str) -> str:
    """Escape the right-hand side of a Ninja variable binding."""
    return str(value).replace("$", "$$")


def depfile_escape(path: str) -> str:
    """Escape a prerequisite for a Makefile-style depfile."""
    return (
        str(path)
        .replace(" ", "\\ ")
        .replace("#", "\\#")
        .replace("$", "$$")
    )
