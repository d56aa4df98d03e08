# SPDX-License-Identifier: MIT
"""The build graph: every target declared during a configure pass.

The graph keeps targets in registration order, which is also the order
the generator emits them in. It enforces globally unique outputs and
indexes aliases by name so scripts can look them up.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path

from kiln.core.errors import ConfigurationError
from kiln.core.target import AliasTarget, ReconfigureTarget, Target
from kiln.util.source_location import SourceLocation

logger = logging.getLogger(__name__)

TAG_PREFIX = "tags/"
DEFAULT_TAG = "all"


class BuildGraph:
    """Container for targets, aliases, tags and pools.

    Example:
        graph = BuildGraph()
        obj = graph.register(CommandTarget(["a.o"], ["a.c"], commands=[...], cwd="."))
        graph.attach_to_tags(obj, ["objects"])
        graph.tag("all").add(graph.tag("objects"))

    Attributes:
        targets: All targets in registration order.
        pools: Declared Ninja pools (name -> depth).
        reconfigure: The self-reconfigure target, if one was set.
        build_dir: Directory the generated files are written to. Relative
            names of files the configure pass writes are resolved against
            it before they are checked for collisions.
    """

    __slots__ = (
        "targets",
        "pools",
        "reconfigure",
        "build_dir",
        "_outputs",
        "_named",
        "_tags",
    )

    def __init__(self, build_dir: Path | str | None = None) -> None:
        self.targets: list[Target] = []
        self.pools: dict[str, int] = {}
        self.reconfigure: ReconfigureTarget | None = None
        self.build_dir = str(build_dir) if build_dir is not None else None
        self._outputs: dict[str, Target] = {}
        self._named: dict[str, AliasTarget] = {}
        self._tags: dict[str, AliasTarget] = {}
        self.tag(DEFAULT_TAG)

    def register(self, target: Target) -> Target:
        """Append a target to the graph.

        The first target routed to a partition also claims that
        partition's ninja file for the reconfigure target.

        Raises:
            ConfigurationError: If any of its outputs is already produced
                by another target or written by the configure pass.
        """
        outputs = target.all_outputs()
        partition_file = None
        if (
            self.reconfigure is not None
            and target.partition is not None
            and target.partition not in self.partitions()
        ):
            partition_file = self._generated_path(f"{target.partition}.ninja")
        self._check_unclaimed(outputs, target.defined_at)
        if partition_file:
            self._check_unclaimed(
                [partition_file], target.defined_at, allow=self.reconfigure
            )

        for output in outputs:
            self._outputs[output] = target
        if partition_file and self.reconfigure is not None:
            self._outputs[partition_file] = self.reconfigure
        self.targets.append(target)
        if isinstance(target, AliasTarget):
            self._named[target.name] = target
        logger.debug("Registered %r", target)
        return target

    def set_reconfigure(self, target: ReconfigureTarget) -> None:
        """Install the self-reconfigure target.

        It is emitted by the generator after every other statement rather
        than in registration order. Its outputs and the files of the
        partitions used so far are claimed for it.

        Raises:
            ConfigurationError: If another target already produces one of
                those files.
        """
        claims = [self._generated_path(o) for o in target.outputs]
        claims += [self._generated_path(f"{p}.ninja") for p in self.partitions()]
        self._check_unclaimed(claims, target.defined_at, allow=self.reconfigure)
        self.reconfigure = target
        for output in claims:
            self._outputs[output] = target

    def add_generated(self, path: str, location: SourceLocation | None = None) -> None:
        """Record a file the configure pass itself writes.

        Raises:
            ConfigurationError: If there is no reconfigure target, or another
                target already produces path.
        """
        if self.reconfigure is None:
            raise ConfigurationError("no reconfigure target to own " + path, location)
        output = self._generated_path(path)
        self._check_unclaimed([output], location, allow=self.reconfigure)
        self.reconfigure.add_output(path)
        self._outputs[output] = self.reconfigure

    def _generated_path(self, name: str) -> str:
        if self.build_dir is None or os.path.isabs(name):
            return name
        return os.path.normpath(os.path.join(self.build_dir, name))

    def _check_unclaimed(
        self,
        outputs: Iterable[str],
        location: SourceLocation | None,
        allow: Target | None = None,
    ) -> None:
        for output in outputs:
            existing = self._outputs.get(output)
            if existing is None or existing is allow:
                continue
            message = f"duplicate output {output!r}"
            if isinstance(existing, ReconfigureTarget):
                message += " (written by the configure pass)"
            elif existing.defined_at:
                message += f" (first declared at {existing.defined_at})"
            raise ConfigurationError(message, location)

    def tag(self, name: str) -> AliasTarget:
        """Get the alias for a tag, creating it on first use."""
        alias = self._tags.get(name)
        if alias is None:
            alias = AliasTarget(TAG_PREFIX + name)
            self._tags[name] = alias
            self.register(alias)
        return alias

    def attach_to_tags(self, target: Target, tags: Iterable[str]) -> None:
        """Make target a dependency of every tag alias in tags.

        Attaching the same target twice lists it twice.
        """
        for tag in tags:
            self.tag(tag).add(target)

    @property
    def tags(self) -> dict[str, AliasTarget]:
        return dict(self._tags)

    @property
    def named_targets(self) -> dict[str, AliasTarget]:
        """All aliases (tag groups included) by name."""
        return dict(self._named)

    def find_named_target(self, pattern: str | re.Pattern[str]) -> AliasTarget:
        """Find exactly one alias by name or regular expression.

        A string that is exactly an alias name matches that alias.
        Otherwise the pattern is searched for (``re.search``) in every
        alias name, so anchor it to narrow the match.

        Raises:
            ConfigurationError: If nothing or more than one alias matches.
        """
        if isinstance(pattern, str) and pattern in self._named:
            return self._named[pattern]

        try:
            regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        except re.error as e:
            raise ConfigurationError(
                f"invalid named target pattern {pattern!r}: {e}"
            ) from e
        matches = [t for name, t in self._named.items() if regex.search(name)]
        if not matches:
            raise ConfigurationError(f"no named target matches {regex.pattern!r}")
        if len(matches) > 1:
            names = ", ".join(t.name for t in matches)
            raise ConfigurationError(
                f"named target pattern {regex.pattern!r} is ambiguous: {names}"
            )
        return matches[0]

    def declare_pool(self, name: str, depth: int) -> None:
        if name == "console":
            raise ConfigurationError("the console pool is built in")
        if depth < 1:
            raise ConfigurationError(f"pool {name!r} needs a depth of at least 1")
        self.pools[name] = depth

    def partitions(self) -> list[str]:
        """Names of non-root partitions, in order of first use."""
        seen: list[str] = []
        for target in self.targets:
            if target.partition is not None and target.partition not in seen:
                seen.append(target.partition)
        return seen

    def __len__(self) -> int:
        return len(self.targets)

    def __repr__(self) -> str:
        return f"BuildGraph(targets={len(self.targets)}, tags={len(self._tags)})"
