"""
Application checkout.
"""

import logging
from pathlib import Path

from .errors import CommandFailed, CommandTimeout, SourceError
from .settings import Settings

logger = logging.getLogger(__name__)


class SourceFetcher:
    """Clones the application repository when the checkout directory is absent."""

    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings

    def needs_clone(self) -> bool:
        return not self.settings.source_path.exists()

    def fetch(self) -> Path:
        path = self.settings.source_path
        if not self.needs_clone():
            logger.info("Repository already cloned at %s", path)
            return path

        repo_url = self.settings.app.repo_url
        if not repo_url:
            raise SourceError(
                f"Application directory {path} not found",
                hint="Set app.repo_url or app.source_dir in shipyard.yaml",
            )

        logger.info("Cloning %s repository...", self.settings.app.name)
        try:
            self.runner.run(
                ["git", "clone", repo_url, str(path)],
                timeout=self.settings.timeouts.install,
            )
        except (CommandFailed, CommandTimeout) as e:
            raise SourceError(f"Clone of {repo_url} failed: {e}") from e
        return path
