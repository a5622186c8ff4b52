"""
Config scaffolding: create-if-absent files and marker-guarded appends.
"""

from .scaffolder import (
    AppendOutcome,
    ConfigScaffolder,
    ScaffoldOutcome,
    append_block,
    scaffold,
    scaffold_from,
)

__all__ = [
    "AppendOutcome",
    "ConfigScaffolder",
    "ScaffoldOutcome",
    "append_block",
    "scaffold",
    "scaffold_from",
]
