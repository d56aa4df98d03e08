# SPDX-License-Identifier: MIT
"""Ninja build file generator.

Renders a BuildGraph as Ninja files in the build directory:

- ``rules.ninja``: tool variables, pools and one rule per target kind.
- ``<partition>.ninja``: build statements routed to a named partition.
- ``build.ninja``: includes the other files, then the root partition's
  statements, the reconfigure/clean/help statements and the default goal.
  It is rendered last so it sees every tag fully populated.

All paths in the graph are absolute except the files the configure pass
writes itself, which are relative to the build directory ninja runs in.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

from kiln.core.errors import SerializationError
from kiln.core.graph import DEFAULT_TAG, TAG_PREFIX, BuildGraph
from kiln.core.target import (
    CommandTarget,
    CompileTarget,
    Dependency,
    ReconfigureTarget,
    Target,
    resolve_dependencies,
)
from kiln.util.shell import (
    format_command,
    join_args,
    ninja_escape_path,
    ninja_escape_value,
    quote_arg,
)

logger = logging.getLogger(__name__)

BUILD_FILE = "build.ninja"
RULES_FILE = "rules.ninja"
REQUIRED_VERSION = "1.5"

# Rule definitions, keyed by rule name. Values are (variable, value) pairs
# written verbatim, so they may reference ninja variables.
RULES: dict[str, list[tuple[str, str]]] = {
    "command": [
        ("command", "cd $cwd && $env $cmd"),
        ("depfile", "$depfile"),
        ("description", "$desc"),
    ],
    "compile": [
        (
            "command",
            "cd $root && $compiler $flags -MD -MF $out.d -c $in -o $out"
            " && $rewrite_depfile $root $out.d",
        ),
        ("depfile", "$out.d"),
        ("deps", "gcc"),
        ("description", "CC $out"),
    ],
    "link": [
        ("command", "cd $root && $compiler $in -o $out $flags"),
        ("description", "LINK $out"),
    ],
    "copy": [
        ("command", "$copy $in $out"),
        ("description", "COPY $out"),
    ],
    "reconfigure": [
        ("command", "$reconfigure_command"),
        ("description", "Reconfiguring"),
        ("generator", "1"),
    ],
    "clean": [
        ("command", "ninja -t clean"),
        ("description", "Cleaning"),
    ],
    "help": [
        ("command", "$help_command"),
        ("description", "Listing goals"),
    ],
}


class NinjaGenerator:
    """Generator that writes Ninja build files.

    Example:
        generator = NinjaGenerator()
        generator.generate(graph, Path("build"))
        # Creates build/build.ninja and build/rules.ninja
    """

    def __init__(self, python: str | None = None) -> None:
        """Initialize the generator.

        Args:
            python: Interpreter used for helper commands (default: the
                running interpreter).
        """
        self.name = "ninja"
        self._python = python or sys.executable

    def generate(self, graph: BuildGraph, output_dir: Path) -> None:
        """Write every file of the graph into output_dir."""
        output_dir.mkdir(parents=True, exist_ok=True)
        for filename, text in self.serialize(graph).items():
            path = output_dir / filename
            path.write_text(text)
            logger.info("Wrote %s", path)

    def serialize(self, graph: BuildGraph) -> dict[str, str]:
        """Render the graph.

        Returns:
            File name to file content, in writing order (build.ninja last).

        Raises:
            SerializationError: If any target cannot be rendered.
        """
        partitions = graph.partitions()
        for name in partitions:
            self._check_partition_name(name)

        files: dict[str, str] = {RULES_FILE: self._render_rules(graph)}
        for name in partitions:
            files[f"{name}.ninja"] = self._render_partition(graph, name)
        files[BUILD_FILE] = self._render_root(graph, partitions)
        return files

    # -- files ---------------------------------------------------------------

    def _write_header(self, f: _Buffer, title: str) -> None:
        f.write("# This file is generated by kiln; do not edit.\n")
        f.write(f"# {title}\n\n")

    def _render_rules(self, graph: BuildGraph) -> str:
        f = _Buffer()
        self._write_header(f, "Rules shared by every build file.")
        python = ninja_escape_value(quote_arg(self._python))
        f.write(f"python = {python}\n")
        f.write("copy = $python -m kiln.util.commands copy\n")
        f.write("rewrite_depfile = $python -m kiln.util.commands rewrite-depfile\n")
        f.write("\n")

        for name, depth in graph.pools.items():
            f.write(f"pool {name}\n")
            f.write(f"  depth = {depth}\n")
            f.write("\n")

        for name, variables in RULES.items():
            f.write(f"rule {name}\n")
            for key, value in variables:
                f.write(f"  {key} = {value}\n")
            f.write("\n")
        return f.getvalue()

    def _render_partition(self, graph: BuildGraph, partition: str) -> str:
        f = _Buffer()
        self._write_header(f, f"Partition {partition!r}.")
        self._write_targets(f, graph, partition)
        return f.getvalue()

    def _render_root(self, graph: BuildGraph, partitions: list[str]) -> str:
        f = _Buffer()
        self._write_header(f, "Root build file.")
        f.write(f"ninja_required_version = {REQUIRED_VERSION}\n")
        f.write("builddir = .\n\n")
        f.write(f"include {RULES_FILE}\n")
        for name in partitions:
            f.write(f"include {ninja_escape_path(name)}.ninja\n")
        f.write("\n")

        self._write_targets(f, graph, None)

        if graph.reconfigure is not None:
            self._write_reconfigure(f, graph.reconfigure, partitions)

        self._write_build(f, ["clean"], "clean", variables=[("pool", "console")])
        self._write_build(
            f,
            ["help"],
            "help",
            variables=[
                ("help_command", self._help_command(graph)),
                ("pool", "console"),
            ],
        )
        f.write(f"default {ninja_escape_path(TAG_PREFIX + DEFAULT_TAG)}\n")
        return f.getvalue()

    def _write_targets(
        self, f: _Buffer, graph: BuildGraph, partition: str | None
    ) -> None:
        for target in graph.targets:
            if target.partition != partition:
                continue
            try:
                self._write_target(f, graph, target)
            except SerializationError:
                logger.error("Failed to serialize %s", target.name)
                raise
            except (TypeError, ValueError) as e:
                logger.error("Failed to serialize %s", target.name)
                raise SerializationError(target.name, str(e), target.defined_at) from e

    def _write_reconfigure(
        self, f: _Buffer, target: ReconfigureTarget, partitions: list[str]
    ) -> None:
        outputs = list(target.outputs)
        for name in partitions:
            if f"{name}.ninja" not in outputs:
                outputs.append(f"{name}.ninja")
        self._write_build(
            f,
            outputs,
            "reconfigure",
            inputs=resolve_dependencies(target.inputs),
            variables=[
                ("reconfigure_command", join_args(target.command)),
                ("pool", "console"),
            ],
        )

    def _help_command(self, graph: BuildGraph) -> str:
        lines = ["Goals:"]
        lines.extend(f"  {name}" for name in sorted(graph.named_targets))
        lines.extend(["  clean", "  help"])
        return " && ".join(f"echo {quote_arg(line)}" for line in lines)

    # -- statements ----------------------------------------------------------

    def _write_target(self, f: _Buffer, graph: BuildGraph, target: Target) -> None:
        if target.rule not in RULES and target.rule != "phony":
            raise SerializationError(
                target.name, f"unsupported rule {target.rule!r}", target.defined_at
            )
        self._write_build(
            f,
            target.outputs,
            target.rule,
            inputs=self._resolve(target.inputs),
            implicit=self._resolve(target.implicit_inputs),
            order_only=self._resolve(target.order_only_inputs),
            implicit_outputs=target.implicit_outputs,
            variables=self._variables(graph, target),
        )

    def _resolve(self, deps: Iterable[Dependency]) -> list[str]:
        return resolve_dependencies(deps)

    def _variables(self, graph: BuildGraph, target: Target) -> list[tuple[str, str]]:
        """Build-level variables specific to the target's rule."""
        if isinstance(target, CommandTarget):
            variables = [("cwd", quote_arg(target.cwd))]
            if target.env:
                assignments = " ".join(
                    f"{key}={quote_arg(value)}" for key, value in target.env.items()
                )
                variables.append(("env", f"export {assignments} &&"))
            cmd = " && ".join(format_command(c) for c in target.commands)
            variables.append(("cmd", cmd))
            if target.depfile:
                variables.append(("depfile", target.depfile))
            if target.pool:
                if target.pool != "console" and target.pool not in graph.pools:
                    raise SerializationError(
                        target.name,
                        f"pool {target.pool!r} was never declared",
                        target.defined_at,
                    )
                variables.append(("pool", target.pool))
            variables.append(("desc", f"CMD {target.name}"))
            return variables

        if isinstance(target, CompileTarget):
            return [
                ("compiler", quote_arg(target.compiler)),
                ("flags", join_args(target.flags)),
                ("root", quote_arg(target.root)),
            ]

        return []

    def _write_build(
        self,
        f: _Buffer,
        outputs: Iterable[str],
        rule: str,
        *,
        inputs: Iterable[str] = (),
        implicit: Iterable[str] = (),
        order_only: Iterable[str] = (),
        implicit_outputs: Iterable[str] = (),
        variables: Iterable[tuple[str, str]] = (),
    ) -> None:
        line = ["build", *(self._escape_path(o) for o in outputs)]
        implicit_outputs = [self._escape_path(o) for o in implicit_outputs]
        if implicit_outputs:
            line.append("|")
            line.extend(implicit_outputs)
        line[-1] += ":"
        line.append(rule)
        line.extend(self._escape_path(i) for i in inputs)
        implicit = [self._escape_path(i) for i in implicit]
        if implicit:
            line.append("|")
            line.extend(implicit)
        order_only = [self._escape_path(i) for i in order_only]
        if order_only:
            line.append("||")
            line.extend(order_only)
        f.write(" ".join(line) + "\n")

        for key, value in variables:
            if "\n" in value:
                raise ValueError(f"variable {key!r} contains a newline")
            f.write(f"  {key} = {ninja_escape_value(value)}\n")
        f.write("\n")

    def _check_partition_name(self, name: str) -> None:
        if not name or "/" in name or f"{name}.ninja" in (BUILD_FILE, RULES_FILE):
            raise SerializationError(
                f"partition {name!r}", "partition names must be plain file stems"
            )

    @staticmethod
    def _escape_path(path: Path | str) -> str:
        """Escape a path for use on a build line."""
        return ninja_escape_path(str(path))


class _Buffer:
    """Minimal text accumulator with a file-like write()."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def write(self, text: str) -> None:
        self._parts.append(text)

    def getvalue(self) -> str:
        return "".join(self._parts)
