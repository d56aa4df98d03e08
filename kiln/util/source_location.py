# SPDX-License-Identifier: MIT
"""Source locations for error reporting.

Targets and scopes record where in a configuration script they were
declared, so errors can point at the offending line.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

# Frames from these packages are skipped when looking for the caller.
_INTERNAL_PREFIX = str(Path(__file__).resolve().parent.parent) + os.sep


@dataclass(frozen=True)
class SourceLocation:
    """A file/line pair in user code."""

    filename: str
    lineno: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.lineno}"


def get_caller_location(skip_internal: bool = True) -> SourceLocation | None:
    """Find the first stack frame outside of kiln itself.

    Args:
        skip_internal: If False, return the immediate caller of the
            function that called get_caller_location().

    Returns:
        The location, or None if no suitable frame exists.
    """
    frame = sys._getframe(1)
    if not skip_internal:
        caller = frame.f_back
        if caller is None:
            return None
        return SourceLocation(caller.f_code.co_filename, caller.f_lineno)

    while frame is not None:
        filename = frame.f_code.co_filename
        if not _is_internal(filename):
            return SourceLocation(filename, frame.f_lineno)
        frame = frame.f_back
    return None


def _is_internal(filename: str) -> bool:
    if filename.startswith("<"):
        return True
    try:
        resolved = str(Path(filename).resolve())
    except OSError:
        return False
    return resolved.startswith(_INTERNAL_PREFIX)
