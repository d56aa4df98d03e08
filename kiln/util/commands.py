# SPDX-License-Identifier: MIT
"""Helper commands invoked from generated ninja rules.

These run as separate processes while ninja builds, never during the
configure pass.

Usage in build rules:
    python -m kiln.util.commands copy <src> <dest>
    python -m kiln.util.commands rewrite-depfile <root> <depfile>
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

from kiln.core.errors import DepfileFormatError
from kiln.util.depfile import rewrite_depfile


def copy(src: str, dest: str) -> None:
    """Copy a file, creating parent directories as needed."""
    dest_path = Path(dest)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(
            "Usage: python -m kiln.util.commands <command> [args...]", file=sys.stderr
        )
        print("Commands: copy, rewrite-depfile", file=sys.stderr)
        return 1

    cmd = args[0]

    if cmd == "copy":
        if len(args) != 3:
            print(
                "Usage: python -m kiln.util.commands copy <src> <dest>",
                file=sys.stderr,
            )
            return 1
        copy(args[1], args[2])
        return 0

    elif cmd == "rewrite-depfile":
        if len(args) != 3:
            print(
                "Usage: python -m kiln.util.commands rewrite-depfile <root> <depfile>",
                file=sys.stderr,
            )
            return 1
        try:
            rewrite_depfile(args[1], args[2])
        except DepfileFormatError as e:
            print(f"kiln: {e}", file=sys.stderr)
            return 1
        return 0

    else:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
