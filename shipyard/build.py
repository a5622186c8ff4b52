"""
Build Runner: dependency install and production build of the application.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from .envman import EnvironmentProfile
from .errors import ArtifactMissing, BuildError, CommandFailed, CommandTimeout, EnvProfileError
from .scaffold import ScaffoldOutcome, scaffold_from
from .settings import Settings

logger = logging.getLogger(__name__)


class BuildRunner:
    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings

    @property
    def project_dir(self) -> Path:
        return self.settings.source_path

    @property
    def build_dir(self) -> Path:
        return self.project_dir / self.settings.app.build_dir

    def resolve_env_file(self) -> Path:
        """
        Return the production env file, creating it from the local one if needed.

        Raises:
            EnvProfileError: If neither file exists
        """
        env_file = self.project_dir / self.settings.app.env_file
        if env_file.exists():
            return env_file

        fallback = self.project_dir / self.settings.app.fallback_env_file
        if not fallback.exists():
            raise EnvProfileError(
                "No environment file found",
                hint=f"Create {env_file} with your variables",
            )
        logger.warning("%s not found. Creating from %s...", env_file.name, fallback.name)
        if scaffold_from(fallback, env_file) is not ScaffoldOutcome.CREATED:
            raise EnvProfileError(f"Could not create {env_file}")
        return env_file

    def install_command(self) -> List[str]:
        if (self.project_dir / "yarn.lock").exists():
            return ["yarn", "install", "--frozen-lockfile"]
        return ["yarn", "install"]

    def clear_previous_output(self) -> None:
        """Remove the last build's standalone output so it cannot pass as this one."""
        standalone = self.build_dir / "standalone"
        if not standalone.exists():
            return
        logger.debug("Removing previous build output %s", standalone)
        try:
            shutil.rmtree(standalone)
        except OSError as e:
            raise BuildError(f"Cannot remove previous build output {standalone}: {e}") from e

    def build(self, profile: EnvironmentProfile) -> Path:
        """
        Install dependencies, build in production mode and verify the output.

        The build tool's exit status is not trusted on its own: the standalone
        output must exist afterwards.

        Returns:
            Path to the build directory

        Raises:
            BuildError: If a command fails or times out
            ArtifactMissing: If the build output is absent
        """
        cwd = str(self.project_dir)
        timeout = self.settings.timeouts.build
        env = profile.as_env()

        try:
            logger.info("Installing dependencies...")
            self.runner.run(self.install_command(), cwd=cwd, env=env, timeout=timeout)

            extra = self.settings.app.extra_packages
            if extra:
                logger.info("Installing %s...", ", ".join(extra))
                self.runner.run(["yarn", "add"] + list(extra), cwd=cwd, env=env, timeout=timeout)

            self.clear_previous_output()
            logger.info("Building %s...", self.settings.app.name)
            build_env = dict(env, NODE_ENV="production")
            self.runner.run(["yarn", "build"], cwd=cwd, env=build_env, timeout=timeout)
        except (CommandFailed, CommandTimeout) as e:
            raise BuildError(str(e), hint=getattr(e, "hint", None)) from e

        return self.verify_artifact()

    def verify_artifact(self) -> Path:
        if not self.build_dir.is_dir():
            raise ArtifactMissing(str(self.build_dir))
        entry = self.build_dir / "standalone" / self.settings.app.entry_script
        if not entry.is_file():
            raise ArtifactMissing(str(entry))
        return self.build_dir
