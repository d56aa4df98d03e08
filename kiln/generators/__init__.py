# SPDX-License-Identifier: MIT
"""Build file generators."""

from kiln.generators.ninja import BUILD_FILE, RULES_FILE, NinjaGenerator

__all__ = [
    "BUILD_FILE",
    "RULES_FILE",
    "NinjaGenerator",
]
