# SPDX-License-Identifier: MIT
"""Targets: the nodes of the build graph.

A Target is a single build step with declared outputs and dependencies.
Its ``rule`` selects how the Ninja generator emits it. Dependencies are
either other targets (resolved to their outputs when the graph is
serialized) or literal paths.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Union

from kiln.core.errors import ConfigurationError
from kiln.util.source_location import SourceLocation, get_caller_location

Rule = Literal["phony", "command", "compile", "link", "copy", "reconfigure"]


@dataclass(frozen=True)
class TargetRef:
    """Dependency on another target's outputs."""

    target: Target

    def resolve(self) -> list[str]:
        return list(self.target.outputs)


@dataclass(frozen=True)
class PathRef:
    """Dependency on a literal path or name."""

    path: str

    def resolve(self) -> list[str]:
        return [self.path]


Dependency = Union[TargetRef, PathRef]

# What scripts may pass wherever a dependency is expected.
DependencyLike = Union["Target", Dependency, Path, str]


def as_dependency(item: DependencyLike) -> Dependency:
    """Wrap a target or path in the matching Dependency variant."""
    if isinstance(item, (TargetRef, PathRef)):
        return item
    if isinstance(item, Target):
        return TargetRef(item)
    if isinstance(item, (str, Path)):
        return PathRef(str(item))
    raise ConfigurationError(
        f"cannot depend on {item!r}: expected a target or a path"
    )


def resolve_dependencies(deps: Iterable[Dependency]) -> list[str]:
    """Flatten dependencies into the output identifiers they stand for."""
    result: list[str] = []
    for dep in deps:
        result.extend(dep.resolve())
    return result


class Target:
    """A single build step.

    Attributes:
        outputs: Output identifiers (paths or synthetic names), non-empty.
        inputs: Explicit inputs; order is significant.
        implicit_inputs: Inputs that are not passed to the rule as $in.
        implicit_outputs: Outputs that are not part of $out.
        order_only_inputs: Inputs that only need to exist before this step.
        rule: Emission behavior for the generator.
        metadata: Free-form data other targets and scripts can read.
        partition: Output file this statement goes to (None for the root).
        defined_at: Where this target was declared.
    """

    rule: Rule = "phony"

    __slots__ = (
        "outputs",
        "inputs",
        "implicit_inputs",
        "implicit_outputs",
        "order_only_inputs",
        "metadata",
        "partition",
        "defined_at",
    )

    def __init__(
        self,
        outputs: Sequence[str | Path],
        inputs: Iterable[DependencyLike] = (),
        *,
        implicit_inputs: Iterable[DependencyLike] = (),
        implicit_outputs: Iterable[str | Path] = (),
        order_only_inputs: Iterable[DependencyLike] = (),
        metadata: Mapping[str, Any] | None = None,
        partition: str | None = None,
        defined_at: SourceLocation | None = None,
    ) -> None:
        if isinstance(outputs, (str, Path)):
            outputs = [outputs]
        self.outputs: list[str] = [str(o) for o in outputs]
        self.defined_at = defined_at or get_caller_location()
        if not self.outputs:
            raise ConfigurationError(
                f"{type(self).__name__} declared without outputs", self.defined_at
            )
        self.inputs: list[Dependency] = [as_dependency(d) for d in inputs]
        self.implicit_inputs: list[Dependency] = [
            as_dependency(d) for d in implicit_inputs
        ]
        self.implicit_outputs: list[str] = [str(o) for o in implicit_outputs]
        self.order_only_inputs: list[Dependency] = [
            as_dependency(d) for d in order_only_inputs
        ]
        self.metadata: dict[str, Any] = dict(metadata) if metadata else {}
        self.partition = partition

    @property
    def name(self) -> str:
        """Identity used in messages: the first output."""
        return self.outputs[0]

    def depends(self, *items: DependencyLike) -> Target:
        """Add explicit inputs (fluent API)."""
        self.inputs.extend(as_dependency(i) for i in items)
        return self

    def depends_implicitly(self, *items: DependencyLike) -> Target:
        """Add implicit inputs (fluent API)."""
        self.implicit_inputs.extend(as_dependency(i) for i in items)
        return self

    def set_metadata(self, **fields: Any) -> Target:
        """Add or replace metadata fields (fluent API)."""
        self.metadata.update(fields)
        return self

    def all_outputs(self) -> list[str]:
        return self.outputs + self.implicit_outputs

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class AliasTarget(Target):
    """A named grouping with no build action of its own."""

    rule: Rule = "phony"

    __slots__ = ()

    def __init__(
        self,
        name: str,
        dependencies: Iterable[DependencyLike] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__([name], dependencies, **kwargs)

    def add(self, *items: DependencyLike) -> AliasTarget:
        """Append implicit dependencies to this alias."""
        self.depends_implicitly(*items)
        return self


class CommandTarget(Target):
    """Runs one or more shell command lines in sequence.

    Each command is either a complete shell line (str) or a list of
    arguments that the generator quotes individually.
    """

    rule: Rule = "command"

    __slots__ = ("commands", "cwd", "depfile", "env", "pool")

    def __init__(
        self,
        outputs: Sequence[str | Path],
        inputs: Iterable[DependencyLike] = (),
        *,
        commands: Sequence[str | Sequence[str]],
        cwd: str | Path,
        depfile: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        pool: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(outputs, inputs, **kwargs)
        if not commands:
            raise ConfigurationError(
                f"command target {self.name} has no commands", self.defined_at
            )
        self.commands: list[str | list[str]] = [
            c if isinstance(c, str) else [str(a) for a in c] for c in commands
        ]
        self.cwd = str(cwd)
        self.depfile = str(depfile) if depfile is not None else None
        self.env: dict[str, str] = {k: str(v) for k, v in (env or {}).items()}
        self.pool = pool


class CompileTarget(Target):
    """Compiles one source file, or links object files.

    ``rule`` is "compile" or "link"; both carry the compiler path, a flag
    list and the directory the compiler runs in.
    """

    __slots__ = ("rule", "compiler", "flags", "root")

    def __init__(
        self,
        rule: Literal["compile", "link"],
        output: str | Path,
        inputs: Iterable[DependencyLike],
        *,
        compiler: str,
        flags: Iterable[str] = (),
        root: str | Path,
        **kwargs: Any,
    ) -> None:
        super().__init__([output], inputs, **kwargs)
        self.rule = rule
        self.compiler = compiler
        self.flags: list[str] = [str(f) for f in flags]
        self.root = str(root)


class CopyTarget(Target):
    """Copies a single file."""

    rule: Rule = "copy"

    __slots__ = ()

    def __init__(
        self, dest: str | Path, src: DependencyLike, **kwargs: Any
    ) -> None:
        super().__init__([dest], [src], **kwargs)


class ReconfigureTarget(Target):
    """Regenerates the build files when configuration inputs change.

    Inputs are every script read during the configure pass; outputs are
    every file the pass writes. Both lists grow while scripts run.
    """

    rule: Rule = "reconfigure"

    __slots__ = ("command",)

    def __init__(self, outputs: Sequence[str | Path], command: Sequence[str]) -> None:
        super().__init__(outputs, defined_at=SourceLocation("<kiln>", 0))
        self.command: list[str] = list(command)

    def add_input(self, path: str | Path) -> None:
        dep = PathRef(str(path))
        if dep not in self.inputs:
            self.inputs.append(dep)

    def add_output(self, path: str | Path) -> None:
        if str(path) not in self.outputs:
            self.outputs.append(str(path))
