# SPDX-License-Identifier: MIT
"""Rewrite compiler-generated dependency files with absolute paths.

Compilers write Makefile-style depfiles whose prerequisites are relative
to the directory the compiler ran in. Ninja reads them relative to the
build directory instead, so after every compile the depfile is rewritten
with each relative prerequisite resolved against the compiler's root.

Input syntax handled:
    out.o: a.h \\
      include/b.h

A backslash at the end of a line continues the record on the next line,
``\\ `` is a space inside a path, ``\\#`` a hash and ``$$`` a dollar.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from kiln.core.errors import DepfileFormatError
from kiln.util.shell import depfile_escape

logger = logging.getLogger(__name__)


@dataclass
class DepRecord:
    """One ``target: prerequisites`` rule."""

    target: str
    prerequisites: list[str] = field(default_factory=list)
    lineno: int = 0

    def format(self) -> str:
        parts = [depfile_escape(self.target) + ":"]
        parts.extend(depfile_escape(p) for p in self.prerequisites)
        return " ".join(parts)


def _logical_lines(text: str) -> list[tuple[int, str]]:
    """Join backslash-continued lines, keeping the first line number."""
    result: list[tuple[int, str]] = []
    pending: list[str] = []
    start = 0
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not pending:
            start = lineno
        if line.endswith("\\") and not line.endswith("\\\\"):
            pending.append(line[:-1])
            continue
        pending.append(line)
        result.append((start, " ".join(pending)))
        pending = []
    if pending:
        result.append((start, " ".join(pending)))
    return result


def _tokenize(line: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(line):
        c = line[i]
        nxt = line[i + 1] if i + 1 < len(line) else ""
        if c == "\\" and nxt in (" ", "#"):
            current.append(nxt)
            i += 2
            continue
        if c == "$" and nxt == "$":
            current.append("$")
            i += 2
            continue
        if c in " \t":
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(c)
        i += 1
    if current:
        tokens.append("".join(current))
    return tokens


def parse_depfile(text: str, path: Path | str = "<depfile>") -> list[DepRecord]:
    """Parse depfile text into records, one per target.

    Raises:
        DepfileFormatError: If a record has no ``target:`` part, or the
            file contains no records at all.
    """
    records: list[DepRecord] = []
    for lineno, line in _logical_lines(text):
        tokens = _tokenize(line)
        if not tokens:
            continue
        split = next((i for i, t in enumerate(tokens) if t.endswith(":")), None)
        if split is None:
            raise DepfileFormatError(path, "record has no target separator", lineno)
        targets = list(tokens[: split + 1])
        targets[-1] = targets[-1][:-1]
        targets = [t for t in targets if t]
        if not targets:
            raise DepfileFormatError(path, "record has no target", lineno)
        prerequisites = tokens[split + 1 :]
        for target in targets:
            records.append(DepRecord(target, list(prerequisites), lineno))
    if not records:
        raise DepfileFormatError(path, "no dependency records")
    return records


def absolutize(prerequisite: str, root: Path | str) -> str:
    """Resolve one prerequisite against root.

    A stray trailing colon is dropped first.
    """
    if prerequisite.endswith(":") and len(prerequisite) > 1:
        prerequisite = prerequisite[:-1]
    if os.path.isabs(prerequisite):
        return prerequisite
    return os.path.normpath(os.path.join(str(root), prerequisite))


def rewrite_text(text: str, root: Path | str, path: Path | str = "<depfile>") -> str:
    """Return depfile text with every prerequisite made absolute."""
    records = parse_depfile(text, path)
    for record in records:
        record.prerequisites = [absolutize(p, root) for p in record.prerequisites]
    return "".join(record.format() + "\n" for record in records)


def rewrite_depfile(root: Path | str, path: Path | str) -> None:
    """Rewrite a depfile in place.

    The new content is written to a temporary file next to the original
    and moved over it, so readers never see a partial file.

    Args:
        root: Directory the compiler ran in.
        path: The depfile to rewrite.

    Raises:
        DepfileFormatError: If the file is not a valid depfile.
        OSError: If the file cannot be read or replaced.
    """
    path = Path(path)
    text = path.read_text()
    rewritten = rewrite_text(text, root, path)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(rewritten)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise
    logger.debug("Rewrote %s relative to %s", path, root)
