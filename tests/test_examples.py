# SPDX-License-Identifier: MIT
"""Test runner for example projects.

Discovers and runs all example projects in examples/.
Each example is a self-contained project that serves as both
a test and documentation for users.

Every example is configured with ``python -m kiln.cli configure``; the
generated build.ninja is checked against test.toml, and when ninja and
a C compiler are installed the example is also built and run.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
import tomllib
from pathlib import Path
from typing import Any

import pytest

from kiln.util.shell import ninja_escape_path

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


def discover_examples() -> list[Path]:
    """Discover all example directories that have a kiln.py and test.toml."""
    examples = []
    if not EXAMPLES_DIR.exists():
        return examples

    for item in sorted(EXAMPLES_DIR.iterdir()):
        if item.is_dir() and (item / "kiln.py").exists() and (item / "test.toml").exists():
            examples.append(item)

    return examples


def load_test_config(example_dir: Path) -> dict[str, Any]:
    """Load test.toml configuration."""
    config_file = example_dir / "test.toml"
    with open(config_file, "rb") as f:
        return tomllib.load(f)


def expand(pattern: str, work_dir: Path, build_dir: Path) -> str:
    """Substitute {source} and {build} with ninja-escaped paths."""
    return pattern.replace("{source}", ninja_escape_path(str(work_dir))).replace(
        "{build}", ninja_escape_path(str(build_dir))
    )


def check_build_file(
    content: str, test_config: dict[str, Any], work_dir: Path, build_dir: Path
) -> None:
    """Check statements appear in order and required lines are present."""
    lines = content.splitlines()
    position = -1
    for pattern in test_config.get("statements", []):
        expected = expand(pattern, work_dir, build_dir)
        matches = [i for i, line in enumerate(lines) if line == expected]
        if not matches:
            pytest.fail(f"Statement not found in build.ninja: {expected}")
        if matches[0] <= position:
            pytest.fail(f"Statement out of order in build.ninja: {expected}")
        position = matches[0]

    for pattern in test_config.get("contains", []):
        expected = expand(pattern, work_dir, build_dir)
        if not any(line.startswith(expected) for line in lines):
            pytest.fail(f"Line not found in generated files: {expected}")


def run_example(example_dir: Path, tmp_path: Path) -> None:
    """Configure, check and (when possible) build a single example."""
    config = load_test_config(example_dir)
    test_config = config.get("test", {})

    # Copy example to temp directory (so we don't pollute the source tree)
    work_dir = tmp_path / example_dir.name
    shutil.copytree(example_dir, work_dir)
    build_dir = work_dir / "build"

    result = subprocess.run(
        [
            sys.executable,
            "-P",
            "-m",
            "kiln.cli",
            "configure",
            "-S",
            str(work_dir),
            "-B",
            str(build_dir),
        ],
        cwd=work_dir,
        capture_output=True,
        text=True,
        timeout=60,
    )
    if result.returncode != 0:
        print(f"kiln stdout:\n{result.stdout}")
        print(f"kiln stderr:\n{result.stderr}")
        pytest.fail(f"kiln configure failed with code {result.returncode}")

    for name in test_config.get("expected_files", []):
        if not (work_dir / name).exists():
            pytest.fail(f"Expected file not generated: {name}")

    # Partition files are included by build.ninja, so check them together
    content = "\n".join(
        path.read_text() for path in sorted(build_dir.glob("*.ninja"))
    )
    check_build_file(content, test_config, work_dir, build_dir)

    for tool in test_config.get("requires", []):
        if shutil.which(tool) is None:
            pytest.skip(f"{tool} not available")

    result = subprocess.run(
        ["ninja", "-C", str(build_dir)],
        cwd=work_dir,
        capture_output=True,
        text=True,
        timeout=120,
    )
    if result.returncode != 0:
        print(f"Ninja stdout:\n{result.stdout}")
        print(f"Ninja stderr:\n{result.stderr}")
        pytest.fail(f"ninja failed with code {result.returncode}")

    for output in test_config.get("expected_outputs", []):
        if not (work_dir / output).exists():
            pytest.fail(f"Expected output not found: {output}")

    verify_config = config.get("verify", {})
    command = verify_config.get("command")
    if command:
        result = subprocess.run(
            [str(work_dir / command)],
            cwd=work_dir,
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert result.returncode == 0, result.stderr
        expected_output = verify_config.get("expected_output")
        if expected_output:
            assert expected_output in result.stdout

    # A second run has nothing to do, the generated files included
    result = subprocess.run(
        ["ninja", "-C", str(build_dir)],
        cwd=work_dir,
        capture_output=True,
        text=True,
        timeout=120,
    )
    assert result.returncode == 0
    assert "ninja: no work to do." in result.stdout


@pytest.mark.parametrize(
    "example_dir",
    discover_examples(),
    ids=lambda p: p.name,
)
def test_example(example_dir: Path, tmp_path: Path) -> None:
    """Run an example project."""
    run_example(example_dir, tmp_path)


class TestTwoDirectoryProject:
    """The two-directory scenario, configured in-process."""

    def test_link_depends_on_both_objects(self, tmp_path: Path) -> None:
        from kiln.core.driver import Driver
        from kiln.generators.ninja import BUILD_FILE, NinjaGenerator

        work_dir = tmp_path / "proj"
        shutil.copytree(EXAMPLES_DIR / "01_two_dirs", work_dir)
        build_dir = work_dir / "build"

        driver = Driver(work_dir, build_dir)
        graph = driver.configure()
        content = NinjaGenerator().serialize(graph)[BUILD_FILE]

        compiles = [
            i for i, line in enumerate(content.splitlines()) if ": compile " in line
        ]
        links = [i for i, line in enumerate(content.splitlines()) if ": link " in line]
        assert len(compiles) == 2
        assert len(links) == 1
        assert max(compiles) < links[0]

        link_line = content.splitlines()[links[0]]
        assert f"{build_dir}/app/main.o" in link_line
        assert f"{build_dir}/liba/greet.o" in link_line

        hello = next(t for t in graph.targets if t.rule == "link")
        assert any(
            dep.resolve() == hello.outputs
            for dep in graph.tag("all").implicit_inputs
        )
