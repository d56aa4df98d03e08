# SPDX-License-Identifier: MIT
"""Tests for kiln.core.graph."""

import re

import pytest

from kiln.core.errors import ConfigurationError
from kiln.core.graph import BuildGraph
from kiln.core.target import AliasTarget, ReconfigureTarget, Target, TargetRef


class TestRegister:
    def test_registration_order(self):
        graph = BuildGraph()
        a = graph.register(Target(["/b/a"]))
        b = graph.register(Target(["/b/b"]))

        assert graph.targets[-2:] == [a, b]

    def test_duplicate_output_names_both(self):
        graph = BuildGraph()
        graph.register(Target(["/b/a"]))

        with pytest.raises(ConfigurationError) as excinfo:
            graph.register(Target(["/b/x", "/b/a"]))

        message = str(excinfo.value)
        assert "duplicate output '/b/a'" in message
        assert "first declared at" in message
        assert message.count(__file__) == 2

    def test_duplicate_implicit_output(self):
        graph = BuildGraph()
        graph.register(Target(["/b/a"], implicit_outputs=["/b/a.map"]))

        with pytest.raises(ConfigurationError, match="duplicate output"):
            graph.register(Target(["/b/a.map"]))

    def test_failed_registration_leaves_graph_unchanged(self):
        graph = BuildGraph()
        graph.register(Target(["/b/a"]))
        count = len(graph)

        with pytest.raises(ConfigurationError):
            graph.register(Target(["/b/new", "/b/a"]))

        assert len(graph) == count
        graph.register(Target(["/b/new"]))


class TestTags:
    def test_all_exists_from_start(self):
        graph = BuildGraph()
        assert "all" in graph.tags
        assert graph.tag("all").name == "tags/all"

    def test_tag_created_lazily(self):
        graph = BuildGraph()
        assert "tests" not in graph.tags

        alias = graph.tag("tests")

        assert alias.name == "tags/tests"
        assert graph.tag("tests") is alias

    def test_attach_appends(self):
        graph = BuildGraph()
        target = graph.register(Target(["/b/a"]))
        graph.attach_to_tags(target, ["all", "objects"])

        assert graph.tag("all").implicit_inputs == [TargetRef(target)]
        assert graph.tag("objects").implicit_inputs == [TargetRef(target)]

    def test_attach_twice_lists_twice(self):
        graph = BuildGraph()
        target = graph.register(Target(["/b/a"]))
        graph.attach_to_tags(target, ["all"])
        graph.attach_to_tags(target, ["all"])

        assert graph.tag("all").implicit_inputs == [
            TargetRef(target),
            TargetRef(target),
        ]


class TestNamedTargets:
    def make_graph(self) -> BuildGraph:
        graph = BuildGraph()
        graph.register(AliasTarget("lib/foo"))
        graph.register(AliasTarget("lib/foobar"))
        return graph

    def test_aliases_indexed(self):
        graph = self.make_graph()
        assert {"lib/foo", "lib/foobar", "tags/all"} <= set(graph.named_targets)

    def test_plain_targets_not_indexed(self):
        graph = BuildGraph()
        graph.register(Target(["/b/foo"]))
        assert "/b/foo" not in graph.named_targets

    def test_anchored_regex(self):
        graph = self.make_graph()
        assert graph.find_named_target("foo$").name == "lib/foo"

    def test_ambiguous(self):
        graph = self.make_graph()
        with pytest.raises(ConfigurationError, match="ambiguous"):
            graph.find_named_target("foo")

    def test_exact_name_wins(self):
        graph = self.make_graph()
        assert graph.find_named_target("lib/foo").name == "lib/foo"

    def test_no_match(self):
        graph = self.make_graph()
        with pytest.raises(ConfigurationError, match="no named target"):
            graph.find_named_target("^baz")

    def test_compiled_pattern(self):
        graph = self.make_graph()
        assert graph.find_named_target(re.compile(r"bar$")).name == "lib/foobar"

    def test_invalid_pattern(self):
        graph = self.make_graph()
        with pytest.raises(
            ConfigurationError, match=r"invalid named target pattern .foo\(."
        ):
            graph.find_named_target("foo(")


class TestPools:
    def test_declare(self):
        graph = BuildGraph()
        graph.declare_pool("link", 2)
        assert graph.pools == {"link": 2}

    def test_console_is_builtin(self):
        with pytest.raises(ConfigurationError, match="built in"):
            BuildGraph().declare_pool("console", 1)

    def test_depth_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="at least 1"):
            BuildGraph().declare_pool("link", 0)


class TestPartitions:
    def test_order_of_first_use(self):
        graph = BuildGraph()
        graph.register(Target(["/b/a"], partition="tools"))
        graph.register(Target(["/b/b"]))
        graph.register(Target(["/b/c"], partition="lib"))
        graph.register(Target(["/b/d"], partition="tools"))

        assert graph.partitions() == ["tools", "lib"]


class TestGeneratedFiles:
    def make_graph(self) -> BuildGraph:
        graph = BuildGraph("/b")
        graph.set_reconfigure(ReconfigureTarget(["build.ninja"], ["kiln"]))
        return graph

    def test_reconfigure_outputs_claimed(self):
        graph = self.make_graph()
        with pytest.raises(ConfigurationError, match="configure pass"):
            graph.register(Target(["/b/build.ninja"]))

    def test_add_generated_checks_existing(self):
        graph = self.make_graph()
        graph.register(Target(["/b/gen.h"]))
        with pytest.raises(ConfigurationError, match="duplicate output '/b/gen.h'"):
            graph.add_generated("/b/gen.h")
        assert "/b/gen.h" not in graph.reconfigure.outputs

    def test_add_generated_claims(self):
        graph = self.make_graph()
        graph.add_generated("/b/gen.h")
        assert "/b/gen.h" in graph.reconfigure.outputs
        with pytest.raises(ConfigurationError, match="configure pass"):
            graph.register(Target(["/b/gen.h"]))

    def test_add_generated_needs_reconfigure(self):
        with pytest.raises(ConfigurationError, match="no reconfigure target"):
            BuildGraph("/b").add_generated("/b/gen.h")

    def test_partition_file_claimed(self):
        graph = self.make_graph()
        graph.register(Target(["/b/a"], partition="tools"))
        with pytest.raises(ConfigurationError, match="configure pass"):
            graph.register(Target(["/b/tools.ninja"]))

    def test_partition_file_already_built(self):
        graph = self.make_graph()
        graph.register(Target(["/b/tools.ninja"]))
        with pytest.raises(ConfigurationError, match="duplicate output"):
            graph.register(Target(["/b/a"], partition="tools"))
        assert graph.partitions() == []

    def test_set_reconfigure_claims_used_partitions(self):
        graph = BuildGraph("/b")
        graph.register(Target(["/b/a"], partition="tools"))
        graph.set_reconfigure(ReconfigureTarget(["build.ninja"], ["kiln"]))
        with pytest.raises(ConfigurationError, match="configure pass"):
            graph.register(Target(["/b/tools.ninja"]))
