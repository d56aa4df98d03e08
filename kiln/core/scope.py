# SPDX-License-Identifier: MIT
"""Compilation scopes.

A scope records which source subdirectory is being configured and which
project namespace alias names are qualified with. Scopes are immutable;
entering a directory or project pushes a modified copy and leaving it
restores the previous one.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import PurePosixPath


@dataclass(frozen=True)
class ScopeContext:
    """The active compilation scope.

    Attributes:
        relative_path: Subdirectory of the source tree ("." at the top).
        project_namespace: Slash-joined project name ("" at the top).
    """

    relative_path: PurePosixPath = PurePosixPath(".")
    project_namespace: str = ""

    def child(self, path: str | PurePosixPath) -> ScopeContext:
        """Scope for a subdirectory of this one."""
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"subdirectory must be below the current one: {path}")
        return replace(self, relative_path=self.relative_path / relative)

    def in_project(self, name: str) -> ScopeContext:
        """Scope with name appended to the project namespace."""
        name = name.strip("/")
        if not name:
            raise ValueError("project name must not be empty")
        if self.project_namespace:
            name = f"{self.project_namespace}/{name}"
        return replace(self, project_namespace=name)

    def qualify(self, name: str) -> str:
        """Qualify an alias name with the project namespace."""
        if self.project_namespace:
            return f"{self.project_namespace}/{name}"
        return name


class ScopeStack:
    """Stack of scopes with guaranteed restoration.

    Example:
        stack = ScopeStack()
        with stack.push(stack.current.child("lib")):
            ...  # stack.current.relative_path == PurePosixPath("lib")
    """

    def __init__(self, root: ScopeContext | None = None) -> None:
        self._stack: list[ScopeContext] = [root or ScopeContext()]

    @property
    def current(self) -> ScopeContext:
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    @contextmanager
    def push(self, scope: ScopeContext) -> Iterator[ScopeContext]:
        """Make scope current until the with block exits, however it exits."""
        self._stack.append(scope)
        try:
            yield scope
        finally:
            self._stack.pop()
