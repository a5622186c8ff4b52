"""Command line interface for shipyard."""

from .main import deploy_entry, main, setup_entry

__all__ = ["main", "setup_entry", "deploy_entry"]
