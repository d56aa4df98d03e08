# SPDX-License-Identifier: MIT
"""Custom exceptions for kiln.

All kiln exceptions inherit from KilnError, which includes
optional source location information for better error messages.
None of them is recoverable: the configure pass aborts and must be
rerun after the offending script is fixed.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kiln.util.source_location import SourceLocation


class KilnError(Exception):
    """Base class for all kiln exceptions.

    Attributes:
        message: The error message.
        location: Optional source location where the error occurred.
    """

    def __init__(
        self,
        message: str,
        location: SourceLocation | None = None,
    ) -> None:
        self.message = message
        self.location = location
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message


class ConfigurationError(KilnError):
    """Malformed target declaration.

    Raised for wrong argument combinations, empty or duplicate outputs,
    and named-target lookups that match nothing or more than one alias.
    """


class ScriptError(KilnError):
    """A configuration script is missing or raised while being evaluated.

    Attributes:
        script: Path of the script that failed.
    """

    def __init__(
        self,
        script: Path | str,
        message: str,
        location: SourceLocation | None = None,
    ) -> None:
        self.script = Path(script)
        super().__init__(f"{script}: {message}", location)


class SerializationError(KilnError):
    """A target could not be rendered into a build statement.

    Attributes:
        target: Identity of the target that failed (its first output).
    """

    def __init__(
        self,
        target: str,
        message: str,
        location: SourceLocation | None = None,
    ) -> None:
        self.target = target
        super().__init__(f"cannot serialize {target}: {message}", location)


class DepfileFormatError(KilnError):
    """Dependency file is not a valid Makefile-style listing.

    Attributes:
        path: The depfile being rewritten.
        lineno: 1-based line of the offending record, if known.
    """

    def __init__(
        self, path: Path | str, message: str, lineno: int | None = None
    ) -> None:
        self.path = Path(path)
        self.lineno = lineno
        where = f"{path}:{lineno}" if lineno is not None else str(path)
        super().__init__(f"{where}: {message}")
