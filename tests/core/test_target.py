# SPDX-License-Identifier: MIT
"""Tests for kiln.core.target."""

from pathlib import Path

import pytest

from kiln.core.errors import ConfigurationError
from kiln.core.target import (
    AliasTarget,
    CommandTarget,
    CompileTarget,
    CopyTarget,
    PathRef,
    ReconfigureTarget,
    Target,
    TargetRef,
    as_dependency,
    resolve_dependencies,
)


class TestDependency:
    def test_target_becomes_target_ref(self):
        target = Target(["/b/a.o"])
        assert as_dependency(target) == TargetRef(target)

    def test_path_becomes_path_ref(self):
        assert as_dependency(Path("/s/a.c")) == PathRef("/s/a.c")
        assert as_dependency("/s/a.c") == PathRef("/s/a.c")

    def test_refs_pass_through(self):
        ref = PathRef("x")
        assert as_dependency(ref) is ref

    def test_bad_type(self):
        with pytest.raises(ConfigurationError, match="cannot depend on 42"):
            as_dependency(42)  # type: ignore[arg-type]

    def test_target_ref_resolves_late(self):
        target = Target(["/b/a.o"])
        ref = TargetRef(target)
        target.outputs.append("/b/a.map")

        assert ref.resolve() == ["/b/a.o", "/b/a.map"]

    def test_resolve_dependencies_flattens(self):
        deps = [TargetRef(Target(["x", "y"])), PathRef("z")]
        assert resolve_dependencies(deps) == ["x", "y", "z"]


class TestTarget:
    def test_creation(self):
        target = Target(["/b/out"], ["/s/in"])

        assert target.outputs == ["/b/out"]
        assert target.inputs == [PathRef("/s/in")]
        assert target.rule == "phony"
        assert target.metadata == {}
        assert target.partition is None

    def test_empty_outputs_rejected(self):
        with pytest.raises(ConfigurationError, match="without outputs"):
            Target([])

    def test_single_output_string(self):
        assert Target("/b/out").outputs == ["/b/out"]

    def test_name_is_first_output(self):
        assert Target(["/b/one", "/b/two"]).name == "/b/one"

    def test_defined_at_points_at_caller(self):
        target = Target(["x"])
        assert target.defined_at is not None
        assert target.defined_at.filename == __file__

    def test_fluent_api(self):
        dep = Target(["dep"])
        target = Target(["x"]).depends(dep).depends_implicitly("h").set_metadata(
            kind="obj"
        )

        assert target.inputs == [TargetRef(dep)]
        assert target.implicit_inputs == [PathRef("h")]
        assert target.metadata == {"kind": "obj"}

    def test_all_outputs(self):
        target = Target(["a"], implicit_outputs=["a.map"])
        assert target.all_outputs() == ["a", "a.map"]

    def test_metadata_is_copied(self):
        meta = {"k": 1}
        target = Target(["a"], metadata=meta)
        meta["k"] = 2

        assert target.metadata == {"k": 1}


class TestAliasTarget:
    def test_name_is_output(self):
        alias = AliasTarget("lib/foo", ["x"])

        assert alias.name == "lib/foo"
        assert alias.outputs == ["lib/foo"]
        assert alias.rule == "phony"

    def test_add_appends_implicit_inputs(self):
        alias = AliasTarget("group")
        target = Target(["x"])
        alias.add(target)
        alias.add(target)

        assert alias.implicit_inputs == [TargetRef(target), TargetRef(target)]


class TestCommandTarget:
    def test_creation(self):
        target = CommandTarget(
            ["/b/gen.h"],
            ["/s/gen.py"],
            commands=[["python", "gen.py"], "touch stamp"],
            cwd="/s",
            env={"LANG": "C"},
        )

        assert target.rule == "command"
        assert target.commands == [["python", "gen.py"], "touch stamp"]
        assert target.cwd == "/s"
        assert target.env == {"LANG": "C"}
        assert target.depfile is None
        assert target.pool is None

    def test_requires_commands(self):
        with pytest.raises(ConfigurationError, match="has no commands"):
            CommandTarget(["/b/x"], commands=[], cwd="/s")


class TestCompileTarget:
    def test_compile(self):
        target = CompileTarget(
            "compile", "/b/a.o", ["/s/a.c"], compiler="cc", flags=["-O2"], root="/s"
        )

        assert target.rule == "compile"
        assert target.outputs == ["/b/a.o"]
        assert target.flags == ["-O2"]
        assert target.root == "/s"

    def test_link(self):
        target = CompileTarget("link", "/b/app", ["/b/a.o"], compiler="cc", root="/s")
        assert target.rule == "link"


class TestCopyTarget:
    def test_creation(self):
        target = CopyTarget("/b/data.txt", "/s/data.txt")

        assert target.rule == "copy"
        assert target.inputs == [PathRef("/s/data.txt")]


class TestReconfigureTarget:
    def test_inputs_and_outputs_deduplicated(self):
        target = ReconfigureTarget(["build.ninja"], ["kiln", "configure"])
        target.add_input("/s/kiln.py")
        target.add_input("/s/kiln.py")
        target.add_output("extra.txt")
        target.add_output("build.ninja")

        assert target.inputs == [PathRef("/s/kiln.py")]
        assert target.outputs == ["build.ninja", "extra.txt"]
        assert target.rule == "reconfigure"
