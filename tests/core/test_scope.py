# SPDX-License-Identifier: MIT
"""Tests for kiln.core.scope."""

from pathlib import PurePosixPath

import pytest

from kiln.core.scope import ScopeContext, ScopeStack


class TestScopeContext:
    def test_root(self):
        scope = ScopeContext()
        assert scope.relative_path == PurePosixPath(".")
        assert scope.project_namespace == ""

    def test_child(self):
        scope = ScopeContext().child("lib").child("core")
        assert scope.relative_path == PurePosixPath("lib/core")

    def test_child_of_dot_is_same_dir(self):
        assert ScopeContext().child(".").relative_path == PurePosixPath(".")

    def test_child_rejects_escape(self):
        with pytest.raises(ValueError):
            ScopeContext().child("../elsewhere")
        with pytest.raises(ValueError):
            ScopeContext().child("/abs")

    def test_project_namespace(self):
        scope = ScopeContext().in_project("app").in_project("tests")
        assert scope.project_namespace == "app/tests"
        assert scope.qualify("unit") == "app/tests/unit"

    def test_qualify_at_root(self):
        assert ScopeContext().qualify("unit") == "unit"

    def test_empty_project_name(self):
        with pytest.raises(ValueError):
            ScopeContext().in_project("/")


class TestScopeStack:
    def test_push_and_pop(self):
        stack = ScopeStack()
        child = stack.current.child("lib")

        with stack.push(child):
            assert stack.current is child
            assert stack.depth == 1

        assert stack.current.relative_path == PurePosixPath(".")
        assert stack.depth == 0

    def test_restored_on_error(self):
        stack = ScopeStack()

        with pytest.raises(RuntimeError):
            with stack.push(stack.current.child("lib")):
                raise RuntimeError("boom")

        assert stack.depth == 0
