"""
Local state directory for run journals and the pipeline lock.
"""

import os
from pathlib import Path
from typing import List, Optional

from .ids import is_valid_run_id
from .settings import Settings


def get_state_home(settings: Optional[Settings] = None) -> Path:
    """
    Get the shipyard state directory.

    SHIPYARD_HOME wins over the configured state_dir.
    """
    default = settings.state_dir if settings is not None else ".shipyard"
    return Path(os.environ.get("SHIPYARD_HOME", default)).resolve()


def get_run_dir(run_id: str, settings: Optional[Settings] = None) -> Path:
    """
    Get the directory for a specific run.

    Raises:
        ValueError: If run ID is invalid
    """
    if not is_valid_run_id(run_id):
        raise ValueError(f"Invalid run ID: {run_id}")
    return get_state_home(settings) / run_id


def create_run_dir(run_id: str, settings: Optional[Settings] = None) -> Path:
    run_dir = get_run_dir(run_id, settings)
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def list_runs(settings: Optional[Settings] = None) -> List[str]:
    """List run IDs, most recent first."""
    home = get_state_home(settings)
    if not home.exists():
        return []
    runs = [item.name for item in home.iterdir() if item.is_dir() and is_valid_run_id(item.name)]
    return sorted(runs, reverse=True)


def lock_path(settings: Settings) -> Path:
    """
    Lock file for the deployment target.

    Named after the deploy directory rather than the state directory, so runs
    started from different checkouts still exclude each other.
    """
    target = str(settings.deploy_dir.resolve()).strip("/").replace("/", "-")
    return Path(settings.lock_dir) / f"shipyard-{target}.lock"
