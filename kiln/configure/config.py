# SPDX-License-Identifier: MIT
"""Configuration tree for kiln.

Configuration scripts extend a single nested configuration value with
override semantics. Records are plain dicts, sequences are lists, and
anything else is a scalar. A callable in a delta is a transform: it
receives the previous value and returns the new one.

The final tree is written to a JSON snapshot for downstream tooling.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "kiln_config.json"

_MISSING = object()


def merge(base: Any, delta: Any) -> Any:
    """Deep-merge delta into base, delta wins.

    - A callable delta is applied to base.
    - Two records merge key by key; keys only in base are kept.
    - Anything else (scalars, sequences, mismatched kinds) is replaced
      by delta without complaint.

    Neither argument is modified; the result shares unchanged subtrees
    with base.

    Args:
        base: Current value.
        delta: Patch to apply.

    Returns:
        The merged value.
    """
    if callable(delta):
        return delta(base)

    if isinstance(base, Mapping) and isinstance(delta, Mapping):
        result = dict(base)
        for key, value in delta.items():
            if key in result:
                result[key] = merge(result[key], value)
            else:
                result[key] = _to_record(value)
        return result

    return _to_record(delta)


def _to_record(value: Any) -> Any:
    """Coerce nested mappings into plain dicts.

    Transforms found along the way have no previous value and are applied
    to None.
    """
    if callable(value):
        return value(None)
    if isinstance(value, Mapping):
        return {key: _to_record(item) for key, item in value.items()}
    return value


class Configuration:
    """The running configuration of one configure pass.

    Example:
        config = Configuration({"toolchain": {"cc": "gcc"}})
        config.extend({"toolchain": {"cflags": ["-O2"]}})
        config.extend({"toolchain": {"cflags": lambda old: old + ["-g"]}})
        config.get("toolchain.cflags")  # ["-O2", "-g"]
        config.save(Path("build/kiln_config.json"))
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._value: Any = _to_record(initial) if initial else {}

    @property
    def value(self) -> Any:
        """The merged configuration tree."""
        return self._value

    def extend(self, delta: Any) -> Any:
        """Merge delta into the running configuration.

        Returns:
            The new configuration value.
        """
        self._value = merge(self._value, delta)
        return self._value

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value by dotted key (e.g. "toolchain.cc").

        Args:
            key: Dotted path into nested records.
            default: Returned when any component is missing.
        """
        current = self._value
        for part in key.split("."):
            if not isinstance(current, Mapping):
                return default
            current = current.get(part, _MISSING)
            if current is _MISSING:
                return default
        return current

    def save(self, path: Path) -> None:
        """Write the configuration snapshot as JSON.

        Values JSON cannot represent are written via str().
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self._value, f, indent=2, default=str)
            f.write("\n")
        logger.info("Wrote configuration snapshot %s", path)

    def __repr__(self) -> str:
        if isinstance(self._value, Mapping):
            return f"Configuration({', '.join(map(str, self._value))})"
        return f"Configuration({self._value!r})"


def load_config(path: Path | str) -> dict[str, Any]:
    """Load a saved configuration snapshot.

    Args:
        path: Path to the snapshot file.

    Returns:
        Configuration dict.

    Raises:
        FileNotFoundError: If the snapshot doesn't exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data: dict[str, Any] = json.load(f)
        return data
