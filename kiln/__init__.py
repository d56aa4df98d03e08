# SPDX-License-Identifier: MIT
"""
Kiln: compiles per-directory Python build scripts into Ninja files.

Each directory of a project holds a ``kiln.py`` script. Running
``kiln configure`` evaluates them into a build graph and writes
``build.ninja``; ninja then does the building.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Re-export commonly used classes for convenient imports
from kiln.configure.config import Configuration, merge  # noqa: E402
from kiln.core.driver import Driver, ScriptContext  # noqa: E402
from kiln.core.errors import (  # noqa: E402
    ConfigurationError,
    DepfileFormatError,
    KilnError,
    ScriptError,
    SerializationError,
)
from kiln.core.graph import BuildGraph  # noqa: E402
from kiln.generators.ninja import NinjaGenerator  # noqa: E402

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Core classes
    "BuildGraph",
    "Configuration",
    "Driver",
    "ScriptContext",
    "merge",
    # Generators
    "NinjaGenerator",
    # Errors
    "ConfigurationError",
    "DepfileFormatError",
    "KilnError",
    "ScriptError",
    "SerializationError",
]
