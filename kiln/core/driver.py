# SPDX-License-Identifier: MIT
"""The compiler driver: walks the script tree and builds the graph.

Every configured directory holds a ``kiln.py`` script. The driver
evaluates the root script, which enters subdirectories, which evaluate
their own scripts, and so on. Scripts receive a ScriptContext as the
global ``kiln`` and declare targets through it:

    # src/kiln.py
    obj = kiln.compile("main.o", source="main.c", flags=["-O2"])
    app = kiln.link("app", objects=[obj, kiln.find("util/objects$")])
    kiln.alias("app", app, tags=["all"])

Relative input paths are resolved against the script's source directory
and relative output paths against the matching build directory, so all
paths in the graph are absolute. Files written by the configure pass
itself (build.ninja, rules.ninja, the configuration snapshot) are named
relative to the build directory.
"""

from __future__ import annotations

import logging
import os
import runpy
import sys
import traceback
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Any, Literal

from kiln.configure.config import SNAPSHOT_FILE, Configuration
from kiln.core.errors import ConfigurationError, KilnError, ScriptError
from kiln.core.graph import BuildGraph
from kiln.core.scope import ScopeContext, ScopeStack
from kiln.core.target import (
    AliasTarget,
    CommandTarget,
    CompileTarget,
    CopyTarget,
    DependencyLike,
    PathRef,
    ReconfigureTarget,
    Target,
    TargetRef,
)
from kiln.generators.ninja import BUILD_FILE, RULES_FILE, NinjaGenerator
from kiln.util.source_location import SourceLocation, get_caller_location

logger = logging.getLogger(__name__)

SCRIPT_NAME = "kiln.py"


class Driver:
    """Runs one configure pass.

    Example:
        driver = Driver("src", "build", preloads=["toolchain.py"])
        driver.configure()
        driver.write()

    Attributes:
        source_dir: Absolute root of the source tree.
        build_dir: Absolute root of the build tree (where ninja runs).
        preloads: Scripts evaluated before the root script.
        variables: KEY=value settings that seed the configuration.
        config: The running configuration.
        graph: The target graph being built.
        scripts_read: Every script evaluated so far, in order.
    """

    def __init__(
        self,
        source_dir: Path | str,
        build_dir: Path | str,
        *,
        preloads: Iterable[Path | str] = (),
        variables: Mapping[str, str] | None = None,
        script_name: str = SCRIPT_NAME,
    ) -> None:
        self.source_dir = Path(source_dir).absolute()
        self.build_dir = Path(build_dir).absolute()
        self.preloads = [Path(p).absolute() for p in preloads]
        self.variables: dict[str, str] = {
            k: str(v) for k, v in (variables or {}).items()
        }
        self.script_name = script_name
        self.config = Configuration(_nest_variables(self.variables))
        self.graph = BuildGraph(self.build_dir)
        self.scripts_read: list[Path] = []
        self._scopes = ScopeStack()
        self.graph.set_reconfigure(
            ReconfigureTarget(
                [BUILD_FILE, RULES_FILE, SNAPSHOT_FILE], self.reconfigure_command()
            )
        )

    @property
    def scope(self) -> ScopeContext:
        """The scope of the script currently being evaluated."""
        return self._scopes.current

    @property
    def reconfigure(self) -> ReconfigureTarget:
        assert self.graph.reconfigure is not None
        return self.graph.reconfigure

    # -- paths ---------------------------------------------------------------

    def current_source_dir(self) -> Path:
        return self.source_dir / self.scope.relative_path

    def current_build_dir(self) -> Path:
        return self.build_dir / self.scope.relative_path

    def src(self, path: Path | str) -> str:
        """Absolute path of a source file in the current directory."""
        return _join(self.current_source_dir(), path)

    def out(self, path: Path | str) -> str:
        """Absolute path of a build output in the current directory."""
        return _join(self.current_build_dir(), path)

    def _input(self, item: DependencyLike) -> DependencyLike:
        if isinstance(item, (str, Path)):
            return self.src(item)
        return item

    def _inputs(self, items: Iterable[DependencyLike]) -> list[DependencyLike]:
        if isinstance(items, (str, Path, Target, TargetRef, PathRef)):
            items = [items]
        return [self._input(i) for i in items]

    def _outputs(
        self,
        outputs: Sequence[Path | str] | Path | str,
        location: SourceLocation | None,
    ) -> list[str]:
        if isinstance(outputs, (str, Path)):
            outputs = [outputs]
        result = [self.out(o) for o in outputs]
        if not result:
            raise ConfigurationError("target declared without outputs", location)
        return result

    # -- tree walk -----------------------------------------------------------

    def configure(self) -> BuildGraph:
        """Evaluate the preload scripts and then the whole script tree.

        Returns:
            The populated build graph.

        Raises:
            KilnError: On the first malformed declaration or failing script.
        """
        self.build_dir.mkdir(parents=True, exist_ok=True)
        for preload in self.preloads:
            self._run_script(preload)
        self.enter_subdirectory(".")
        logger.info(
            "Configured %d targets from %d scripts",
            len(self.graph),
            len(self.scripts_read),
        )
        return self.graph

    def write(self, generator: NinjaGenerator | None = None) -> None:
        """Write the ninja files and the configuration snapshot."""
        generator = generator or NinjaGenerator()
        generator.generate(self.graph, self.build_dir)
        self.config.save(self.build_dir / SNAPSHOT_FILE)

    def enter_subdirectory(self, path: Path | str) -> None:
        """Evaluate the script of a subdirectory of the current directory.

        The build subdirectory is created first. The previous scope is
        restored even if the script fails.

        Raises:
            ScriptError: If the script is missing or raises.
            ConfigurationError: If the path leaves the current directory,
                or the script declares something malformed.
        """
        try:
            scope = self.scope.child(PurePosixPath(Path(path).as_posix()))
        except ValueError as e:
            raise ConfigurationError(str(e), get_caller_location()) from e
        with self._scopes.push(scope):
            self.current_build_dir().mkdir(parents=True, exist_ok=True)
            self._run_script(self.current_source_dir() / self.script_name)

    @contextmanager
    def enter_project(self, name: str) -> Iterator[ScopeContext]:
        """Qualify alias names declared inside the with block with name.

        Example:
            with kiln.project("core"):
                kiln.alias("tests", ...)   # named "core/tests"
        """
        try:
            scope = self.scope.in_project(name)
        except ValueError as e:
            raise ConfigurationError(str(e), get_caller_location()) from e
        with self._scopes.push(scope):
            yield scope

    def _run_script(self, script: Path) -> None:
        if not script.is_file():
            raise ScriptError(
                script, "configuration script not found", get_caller_location()
            )
        self.reconfigure.add_input(script)
        self.scripts_read.append(script)
        logger.debug("Evaluating %s (scope %s)", script, self.scope.relative_path)
        try:
            runpy.run_path(
                str(script),
                init_globals={"kiln": ScriptContext(self)},
                run_name="__kiln__",
            )
        except KilnError:
            raise
        except Exception as e:
            raise ScriptError(
                script, f"{type(e).__name__}: {e}", _script_location(script, e)
            ) from e

    # -- configuration -------------------------------------------------------

    def extend_config(self, delta: Any) -> Any:
        """Merge delta into the running configuration and return the result."""
        return self.config.extend(delta)

    # -- declarations --------------------------------------------------------

    def _add(self, target: Target, tags: Iterable[str] | str) -> Target:
        self.graph.register(target)
        if isinstance(tags, str):
            tags = [tags]
        self.graph.attach_to_tags(target, tags)
        return target

    def declare_command_target(
        self,
        outputs: Sequence[Path | str] | Path | str,
        dependencies: Iterable[DependencyLike] = (),
        *,
        command: str | Sequence[str] | None = None,
        commands: Sequence[str | Sequence[str]] | None = None,
        cwd: Path | str | None = None,
        depfile: Path | str | None = None,
        pool: str | None = None,
        env: Mapping[str, str] | None = None,
        tags: Iterable[str] | str = (),
        implicit_inputs: Iterable[DependencyLike] = (),
        order_only_inputs: Iterable[DependencyLike] = (),
        implicit_outputs: Iterable[Path | str] = (),
        metadata: Mapping[str, Any] | None = None,
        partition: str | None = None,
    ) -> CommandTarget:
        """Declare a target built by shell commands.

        Args:
            outputs: Files the commands produce (relative to the build dir).
            dependencies: Explicit inputs (targets or source paths).
            command: A single command (shell line or argument list).
            commands: Several commands run in sequence, stopping at the
                first failure. Give exactly one of command and commands.
            cwd: Directory the commands run in (default: the source dir).
            depfile: Makefile-style depfile the commands write.
            pool: Ninja pool to run in ("console" for exclusive access).
            env: Environment variables exported for the commands.
            tags: Tags to attach the target to.

        Returns:
            The registered target.
        """
        location = get_caller_location()
        if (command is None) == (commands is None):
            raise ConfigurationError(
                "give exactly one of command= or commands=", location
            )
        command_list = [command] if command is not None else list(commands or [])
        target = CommandTarget(
            self._outputs(outputs, location),
            self._inputs(dependencies),
            commands=command_list,
            cwd=self.src(cwd) if cwd is not None else self.current_source_dir(),
            depfile=self.out(depfile) if depfile is not None else None,
            env=env,
            pool=pool,
            implicit_inputs=self._inputs(implicit_inputs),
            order_only_inputs=self._inputs(order_only_inputs),
            implicit_outputs=[self.out(o) for o in implicit_outputs],
            metadata=metadata,
            partition=partition,
            defined_at=location,
        )
        self._add(target, tags)
        return target

    def declare_copy_target(
        self,
        dest: Path | str,
        src: DependencyLike,
        *,
        tags: Iterable[str] | str = (),
        metadata: Mapping[str, Any] | None = None,
        partition: str | None = None,
    ) -> CopyTarget:
        """Declare a copy of src (a target or source file) to dest."""
        location = get_caller_location()
        if isinstance(src, Target) and len(src.outputs) != 1:
            raise ConfigurationError(
                f"cannot copy {src.name}: it has {len(src.outputs)} outputs",
                location,
            )
        target = CopyTarget(
            self._outputs(dest, location)[0],
            self._input(src),
            metadata=metadata,
            partition=partition,
            defined_at=location,
        )
        self._add(target, tags)
        return target

    def declare_compile_target(
        self,
        output: Path | str,
        *,
        source: DependencyLike | None = None,
        objects: Iterable[DependencyLike] | None = None,
        compiler: str | None = None,
        flags: Iterable[str] = (),
        root: Path | str | None = None,
        tags: Iterable[str] | str = (),
        implicit_inputs: Iterable[DependencyLike] = (),
        order_only_inputs: Iterable[DependencyLike] = (),
        metadata: Mapping[str, Any] | None = None,
        partition: str | None = None,
    ) -> CompileTarget:
        """Declare the compilation of one source file into an object.

        The compiler defaults to the ``toolchain.cc`` configuration value
        and ``toolchain.cflags`` is prepended to flags. The compiler runs
        in root (default: the current source directory) and its depfile
        is rewritten with absolute paths after every run.

        Raises:
            ConfigurationError: If source is missing or objects is given.
        """
        location = get_caller_location()
        if source is None or objects is not None:
            raise ConfigurationError(
                "compile targets take exactly one source= and no objects=", location
            )
        return self._compile_or_link(
            "compile",
            output,
            [source],
            compiler=compiler or self.config.get("toolchain.cc", "cc"),
            flags=[*_as_list(self.config.get("toolchain.cflags")), *flags],
            root=root,
            tags=tags,
            implicit_inputs=implicit_inputs,
            order_only_inputs=order_only_inputs,
            metadata=metadata,
            partition=partition,
            location=location,
        )

    def declare_link_target(
        self,
        output: Path | str,
        *,
        objects: Iterable[DependencyLike] | None = None,
        source: DependencyLike | None = None,
        compiler: str | None = None,
        flags: Iterable[str] = (),
        root: Path | str | None = None,
        tags: Iterable[str] | str = (),
        implicit_inputs: Iterable[DependencyLike] = (),
        order_only_inputs: Iterable[DependencyLike] = (),
        metadata: Mapping[str, Any] | None = None,
        partition: str | None = None,
    ) -> CompileTarget:
        """Declare linking object files into output.

        The linker defaults to ``toolchain.ld``, then ``toolchain.cc``;
        ``toolchain.ldflags`` is appended to flags.

        Raises:
            ConfigurationError: If objects is missing or empty, or source
                is given.
        """
        location = get_caller_location()
        object_list = self._inputs(objects) if objects is not None else []
        if not object_list or source is not None:
            raise ConfigurationError(
                "link targets take a non-empty objects= list and no source=",
                location,
            )
        linker = compiler or self.config.get(
            "toolchain.ld", self.config.get("toolchain.cc", "cc")
        )
        return self._compile_or_link(
            "link",
            output,
            object_list,
            compiler=linker,
            flags=[*flags, *_as_list(self.config.get("toolchain.ldflags"))],
            root=root,
            tags=tags,
            implicit_inputs=implicit_inputs,
            order_only_inputs=order_only_inputs,
            metadata=metadata,
            partition=partition,
            location=location,
        )

    def _compile_or_link(
        self,
        rule: Literal["compile", "link"],
        output: Path | str,
        inputs: list[DependencyLike],
        *,
        compiler: str,
        flags: list[str],
        root: Path | str | None,
        tags: Iterable[str] | str,
        implicit_inputs: Iterable[DependencyLike],
        order_only_inputs: Iterable[DependencyLike],
        metadata: Mapping[str, Any] | None,
        partition: str | None,
        location: SourceLocation | None,
    ) -> CompileTarget:
        target = CompileTarget(
            rule,
            self._outputs(output, location)[0],
            self._inputs(inputs),
            compiler=str(compiler),
            flags=[str(f) for f in flags],
            root=self.src(root) if root is not None else self.current_source_dir(),
            implicit_inputs=self._inputs(implicit_inputs),
            order_only_inputs=self._inputs(order_only_inputs),
            metadata=metadata,
            partition=partition,
            defined_at=location,
        )
        self._add(target, tags)
        return target

    def declare_alias(
        self,
        name: str,
        *dependencies: DependencyLike,
        inherit_metadata: Iterable[str] = (),
        tags: Iterable[str] | str = (),
        partition: str | None = None,
    ) -> AliasTarget:
        """Declare a named group of dependencies.

        The name is qualified with the current project namespace.

        Args:
            name: Alias name.
            *dependencies: Targets or source paths the alias stands for.
            inherit_metadata: Metadata fields to copy from the single
                dependency.
            tags: Tags to attach the alias to.

        Raises:
            ConfigurationError: If metadata inheritance is requested without
                exactly one target dependency, or a field is missing.
        """
        location = get_caller_location()
        if isinstance(inherit_metadata, str):
            inherit_metadata = [inherit_metadata]
        fields = list(inherit_metadata)
        qualified = self.scope.qualify(name)
        metadata: dict[str, Any] = {}
        if fields:
            if len(dependencies) != 1 or not isinstance(dependencies[0], Target):
                raise ConfigurationError(
                    f"alias {qualified!r} inherits metadata, so it needs exactly "
                    f"one target dependency (got {len(dependencies)})",
                    location,
                )
            source = dependencies[0]
            for field_name in fields:
                if field_name not in source.metadata:
                    raise ConfigurationError(
                        f"alias {qualified!r} cannot inherit {field_name!r}: "
                        f"{source.name} has no such metadata",
                        location,
                    )
                metadata[field_name] = source.metadata[field_name]
        alias = AliasTarget(
            qualified,
            self._inputs(dependencies),
            metadata=metadata,
            partition=partition,
            defined_at=location,
        )
        self._add(alias, tags)
        return alias

    def declare_pool(self, name: str, depth: int) -> None:
        """Declare a ninja pool limiting how many jobs run at once."""
        try:
            self.graph.declare_pool(name, depth)
        except ConfigurationError as e:
            raise ConfigurationError(e.message, get_caller_location()) from e

    def find_named_target(self, pattern: Any) -> AliasTarget:
        """Find exactly one alias by exact name or regular expression."""
        return self.graph.find_named_target(pattern)

    def tag(self, name: str) -> AliasTarget:
        """The alias collecting everything attached to a tag."""
        return self.graph.tag(name)

    def mark_generated(self, path: Path | str) -> None:
        """Declare a file the configure pass itself writes.

        Raises:
            ConfigurationError: If a target already builds the file.
        """
        self.graph.add_generated(self.out(path), get_caller_location())

    def reconfigure_on(self, path: Path | str) -> None:
        """Re-run the configure pass whenever path changes."""
        self.reconfigure.add_input(self.src(path))

    def reconfigure_command(self) -> list[str]:
        """The command line that repeats this configure pass."""
        cmd = [
            sys.executable,
            "-m",
            "kiln.cli",
            "configure",
            "-S",
            str(self.source_dir),
            "-B",
            str(self.build_dir),
        ]
        for preload in self.preloads:
            cmd.extend(["--preload", str(preload)])
        cmd.extend(f"{k}={v}" for k, v in self.variables.items())
        return cmd

    def __repr__(self) -> str:
        return f"Driver(source_dir={self.source_dir}, build_dir={self.build_dir})"


class ScriptContext:
    """What a configuration script sees as ``kiln``.

    Every operation is forwarded to the driver, which applies it in the
    scope of the script being evaluated.
    """

    __slots__ = ("_driver",)

    def __init__(self, driver: Driver) -> None:
        self._driver = driver

    @property
    def config(self) -> Any:
        """The merged configuration tree (read only by convention)."""
        return self._driver.config.value

    def get_config(self, key: str, default: Any = None) -> Any:
        return self._driver.config.get(key, default)

    @property
    def scope(self) -> ScopeContext:
        return self._driver.scope

    @property
    def source_dir(self) -> Path:
        return self._driver.current_source_dir()

    @property
    def build_dir(self) -> Path:
        return self._driver.current_build_dir()

    def src(self, path: Path | str) -> str:
        return self._driver.src(path)

    def out(self, path: Path | str) -> str:
        return self._driver.out(path)

    def extend_config(self, delta: Any) -> Any:
        return self._driver.extend_config(delta)

    def enter_subdirectory(self, path: Path | str) -> None:
        self._driver.enter_subdirectory(path)

    def enter_project(self, name: str) -> Any:
        return self._driver.enter_project(name)

    def declare_command_target(self, *args: Any, **kwargs: Any) -> CommandTarget:
        return self._driver.declare_command_target(*args, **kwargs)

    def declare_copy_target(self, *args: Any, **kwargs: Any) -> CopyTarget:
        return self._driver.declare_copy_target(*args, **kwargs)

    def declare_compile_target(self, *args: Any, **kwargs: Any) -> CompileTarget:
        return self._driver.declare_compile_target(*args, **kwargs)

    def declare_link_target(self, *args: Any, **kwargs: Any) -> CompileTarget:
        return self._driver.declare_link_target(*args, **kwargs)

    def declare_alias(self, *args: Any, **kwargs: Any) -> AliasTarget:
        return self._driver.declare_alias(*args, **kwargs)

    def declare_pool(self, name: str, depth: int) -> None:
        self._driver.declare_pool(name, depth)

    def find_named_target(self, pattern: Any) -> AliasTarget:
        return self._driver.find_named_target(pattern)

    def tag(self, name: str) -> AliasTarget:
        return self._driver.tag(name)

    def mark_generated(self, path: Path | str) -> None:
        self._driver.mark_generated(path)

    def reconfigure_on(self, path: Path | str) -> None:
        self._driver.reconfigure_on(path)

    # Short spellings for scripts
    subdir = enter_subdirectory
    project = enter_project
    command = declare_command_target
    copy = declare_copy_target
    compile = declare_compile_target
    link = declare_link_target
    alias = declare_alias
    pool = declare_pool
    find = find_named_target

    def __repr__(self) -> str:
        return f"ScriptContext(scope={self.scope})"


def _join(base: Path, path: Path | str) -> str:
    path = Path(path)
    if path.is_absolute():
        return str(path)
    return os.path.normpath(base / path)


def _nest_variables(variables: Mapping[str, str]) -> dict[str, Any]:
    """Turn {"toolchain.cc": "clang"} into {"toolchain": {"cc": "clang"}}."""
    result: dict[str, Any] = {}
    for key, value in variables.items():
        node = result
        *parents, leaf = key.split(".")
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
    return result


def _script_location(script: Path, error: BaseException) -> SourceLocation | None:
    """Innermost traceback frame inside script, if any."""
    if isinstance(error, SyntaxError) and error.filename and error.lineno:
        return SourceLocation(error.filename, error.lineno)
    location = None
    for frame in traceback.extract_tb(error.__traceback__):
        if Path(frame.filename) == script and frame.lineno is not None:
            location = SourceLocation(frame.filename, frame.lineno)
    return location


def _as_list(value: Any) -> list[str]:
    """Flags from configuration: a list, a single string, or nothing."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]
