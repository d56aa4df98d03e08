# SPDX-License-Identifier: MIT
"""Command-line interface for kiln."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from kiln.core.driver import SCRIPT_NAME, Driver
from kiln.core.errors import KilnError
from kiln.util.depfile import rewrite_depfile

# Set up logging
logger = logging.getLogger("kiln")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def find_script(name: str, search_dir: Path | None = None) -> Path | None:
    """Find a configuration script by name.

    Args:
        name: Script name (e.g., 'kiln.py')
        search_dir: Directory to search in (default: current dir)

    Returns:
        Path to script if found, None otherwise.
    """
    if search_dir is None:
        search_dir = Path.cwd()

    script_path = search_dir / name
    if script_path.exists() and script_path.is_file():
        return script_path

    return None


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Parse KEY=value arguments from a list.

    Args:
        args: List of arguments.

    Returns:
        Tuple of (variables dict, remaining args).
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []

    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, _, value = arg.partition("=")
            if key:  # Valid KEY=value
                variables[key] = value
            else:
                remaining.append(arg)
        else:
            remaining.append(arg)

    return variables, remaining


def cmd_configure(args: argparse.Namespace) -> int:
    """Run the configure pass.

    This command:
    1. Runs the preload scripts
    2. Evaluates kiln.py in the source directory and every subdirectory
       it enters
    3. Writes build.ninja (and its included files) to the build directory
    """
    setup_logging(args.verbose, args.debug)

    source_dir = Path(args.source_dir or os.environ.get("KILN_SOURCE_DIR") or ".")
    build_dir = Path(args.build_dir or os.environ.get("KILN_BUILD_DIR") or "build")

    variables, remaining = parse_variables(getattr(args, "extra", []))
    if remaining:
        logger.error("Unexpected arguments: %s", " ".join(remaining))
        logger.info("Configuration values are given as KEY=value")
        return 1

    if find_script(SCRIPT_NAME, source_dir) is None:
        logger.error("No %s found in %s", SCRIPT_NAME, source_dir)
        return 1

    logger.debug("  KILN_SOURCE_DIR=%s", source_dir.absolute())
    logger.debug("  KILN_BUILD_DIR=%s", build_dir.absolute())

    driver = Driver(
        source_dir,
        build_dir,
        preloads=args.preload or [],
        variables=variables,
    )
    try:
        driver.configure()
        driver.write()
    except KilnError as e:
        logger.error("%s", e)
        return 1

    logger.info("Generated %s", driver.build_dir / "build.ninja")
    return 0


def cmd_rewrite_depfile(args: argparse.Namespace) -> int:
    """Rewrite a compiler depfile with absolute prerequisites."""
    setup_logging(args.verbose, args.debug)

    try:
        rewrite_depfile(args.root, args.depfile)
    except KilnError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("Failed to rewrite %s: %s", args.depfile, e)
        return 1
    return 0


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the kiln CLI."""
    parser = argparse.ArgumentParser(
        prog="kiln",
        description="Compile kiln.py build scripts into Ninja files.",
        epilog="Run 'kiln <command> --help' for command-specific help.",
    )
    from kiln import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # kiln configure
    configure_parser = subparsers.add_parser(
        "configure", help="Generate build files from kiln.py scripts"
    )
    add_common_args(configure_parser)
    configure_parser.add_argument(
        "-S",
        "--source-dir",
        help="Source directory (default: $KILN_SOURCE_DIR or .)",
    )
    configure_parser.add_argument(
        "-B",
        "--build-dir",
        help="Build directory (default: $KILN_BUILD_DIR or build)",
    )
    configure_parser.add_argument(
        "--preload",
        action="append",
        metavar="FILE",
        help="Script to evaluate before the root kiln.py (repeatable)",
    )
    configure_parser.add_argument(
        "extra",
        nargs="*",
        help="Configuration values (KEY=value, dotted keys nest)",
    )
    configure_parser.set_defaults(func=cmd_configure)

    # kiln rewrite-depfile
    depfile_parser = subparsers.add_parser(
        "rewrite-depfile", help="Make a compiler depfile's paths absolute"
    )
    add_common_args(depfile_parser)
    depfile_parser.add_argument("root", help="Directory the compiler ran in")
    depfile_parser.add_argument("depfile", help="Depfile to rewrite in place")
    depfile_parser.set_defaults(func=cmd_rewrite_depfile)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
