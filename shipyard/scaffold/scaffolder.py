from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Union

from shipyard.errors import ScaffoldError
from .templates import BLOCK_BEGIN, BLOCK_END, ENV_EXAMPLE, GITIGNORE_BLOCK, NEXT_CONFIG

logger = logging.getLogger(__name__)


class ScaffoldOutcome(Enum):
    CREATED = "created"
    SKIPPED_EXISTING = "skipped_existing"


class AppendOutcome(Enum):
    APPENDED = "appended"
    ALREADY_PRESENT = "already_present"


def scaffold(content: str, destination: Union[str, Path]) -> ScaffoldOutcome:
    """Write `content` to `destination` unless the file already exists."""
    dest = Path(destination)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ScaffoldError(f"Cannot create {dest.parent}: {e}") from e
    try:
        # "x" fails instead of truncating, so a user-edited file is never touched
        with open(dest, "x", encoding="utf-8") as f:
            f.write(content)
    except FileExistsError:
        logger.debug("%s exists, leaving it untouched", dest)
        return ScaffoldOutcome.SKIPPED_EXISTING
    except OSError as e:
        raise ScaffoldError(f"Cannot create {dest}: {e}") from e
    logger.info("Created %s", dest)
    return ScaffoldOutcome.CREATED


def scaffold_from(source: Union[str, Path], destination: Union[str, Path]) -> ScaffoldOutcome:
    """Copy `source` to `destination` unless the destination already exists."""
    dest = Path(destination)
    if dest.exists():
        return ScaffoldOutcome.SKIPPED_EXISTING
    try:
        content = Path(source).read_text(encoding="utf-8")
    except OSError as e:
        raise ScaffoldError(f"Cannot read template {source}: {e}") from e
    return scaffold(content, dest)


def append_block(path: Union[str, Path], block: str) -> AppendOutcome:
    """Append a marker-delimited block once; later runs find the marker and skip."""
    target = Path(path)
    try:
        existing = target.read_text(encoding="utf-8") if target.exists() else ""
    except OSError as e:
        raise ScaffoldError(f"Cannot read {target}: {e}") from e

    if BLOCK_BEGIN in existing:
        return AppendOutcome.ALREADY_PRESENT

    prefix = "" if not existing or existing.endswith("\n") else "\n"
    managed = f"{prefix}\n{BLOCK_BEGIN}\n{block.rstrip()}\n{BLOCK_END}\n"
    try:
        with open(target, "a", encoding="utf-8") as f:
            f.write(managed)
    except OSError as e:
        raise ScaffoldError(f"Cannot update {target}: {e}") from e
    logger.info("Updated %s", target)
    return AppendOutcome.APPENDED


class ConfigScaffolder:
    """Scaffolds the env files, next.config.js and .gitignore of a checkout."""

    def __init__(self, project_dir: Union[str, Path]):
        self.project_dir = Path(project_dir)

    def scaffold_project(self) -> Dict[str, Enum]:
        root = self.project_dir
        example = root / ".env.example"

        outcomes: Dict[str, Enum] = {}
        outcomes[".env.example"] = scaffold(ENV_EXAMPLE, example)
        # stage env files start as copies of the (possibly user-edited) template
        outcomes[".env.local"] = scaffold_from(example, root / ".env.local")
        outcomes[".env.production"] = scaffold_from(example, root / ".env.production")
        outcomes[".gitignore"] = append_block(root / ".gitignore", GITIGNORE_BLOCK)
        outcomes["next.config.js"] = scaffold(NEXT_CONFIG, root / "next.config.js")
        return outcomes
