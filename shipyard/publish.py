"""
Deployment Publisher: lays out the built application in the deployment directory.

The new tree is assembled in a sibling staging directory and swapped in by
rename, so a failed copy never leaves a half-overwritten deployment behind.
The logs/ subdirectory of the previous deployment is carried over.
"""

import getpass
import logging
import shutil
from pathlib import Path

from .errors import CommandFailed, CommandTimeout, PublishError
from .settings import Settings

logger = logging.getLogger(__name__)

LOGS_DIR = "logs"


class DeploymentPublisher:
    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings

    @property
    def deploy_dir(self) -> Path:
        return self.settings.deploy_dir

    @property
    def staging_dir(self) -> Path:
        return self.deploy_dir.with_name(f".{self.settings.app.name}.staging")

    @property
    def previous_dir(self) -> Path:
        return self.deploy_dir.with_name(f".{self.settings.app.name}.previous")

    def ensure_layout(self) -> None:
        logs = self.deploy_dir / LOGS_DIR
        self._sudo(["mkdir", "-p", str(self.deploy_dir), str(logs)])

    def apply_permissions(self) -> None:
        owner = f"{getpass.getuser()}:{self.settings.deploy.serving_group}"
        self._sudo(["chown", "-R", owner, str(self.deploy_dir)])
        self._sudo(["chmod", "-R", self.settings.deploy.mode, str(self.deploy_dir)])

    def _sudo(self, command) -> None:
        try:
            self.runner.run(["sudo"] + list(command))
        except (CommandFailed, CommandTimeout) as e:
            raise PublishError(str(e)) from e

    def stage(self, build_dir: Path, env_file: Path, public_dir: Path) -> Path:
        """Assemble the runtime layout in the staging directory."""
        staging = self.staging_dir
        standalone = Path(build_dir) / "standalone"
        try:
            if staging.exists():
                shutil.rmtree(staging)
            logger.info("Copying build files...")
            shutil.copytree(standalone, staging, symlinks=True)
            # the runtime resolves the full build graph from .next/
            shutil.copytree(
                build_dir,
                staging / ".next",
                symlinks=True,
                dirs_exist_ok=True,
                ignore=shutil.ignore_patterns("standalone"),
            )
            if public_dir.is_dir():
                shutil.copytree(public_dir, staging / "public", symlinks=True, dirs_exist_ok=True)

            logger.info("Copying environment configuration...")
            shutil.copy2(env_file, staging / self.settings.app.env_file)
            (staging / LOGS_DIR).mkdir(exist_ok=True)
        except OSError as e:
            raise PublishError(
                f"Staging {self.settings.app.name} failed: {e}",
                hint=f"Check that {self.settings.deploy.root} is owned by you ('shipyard setup')",
            ) from e
        return staging

    def swap(self, staging: Path) -> None:
        """Replace the deployment with the staged tree, keeping existing logs."""
        current = self.deploy_dir
        previous = self.previous_dir
        try:
            if previous.exists():
                shutil.rmtree(previous)
            if current.exists():
                old_logs = current / LOGS_DIR
                if old_logs.is_dir():
                    shutil.rmtree(staging / LOGS_DIR)
                    old_logs.rename(staging / LOGS_DIR)
                current.rename(previous)
            staging.rename(current)
        except OSError as e:
            self._restore(staging)
            raise PublishError(f"Swapping in new deployment failed: {e}") from e

        if previous.exists():
            try:
                shutil.rmtree(previous)
            except OSError as e:
                logger.warning("Could not remove %s: %s", previous, e)

    def _restore(self, staging: Path) -> None:
        current = self.deploy_dir
        previous = self.previous_dir
        if previous.exists() and not current.exists():
            previous.rename(current)
        staged_logs = staging / LOGS_DIR
        if current.exists() and not (current / LOGS_DIR).exists() and staged_logs.is_dir():
            staged_logs.rename(current / LOGS_DIR)
        logger.error("Restored previous deployment at %s", current)

    def publish(self, build_dir: Path, env_file: Path) -> Path:
        """
        Publish a build into the deployment directory.

        Args:
            build_dir: Verified build output (.next)
            env_file: Environment file copied next to the entrypoint

        Returns:
            The deployment directory

        Raises:
            PublishError: If any copy, swap or permission step fails
        """
        logger.info("Setting up deployment directory...")
        self.ensure_layout()
        self.apply_permissions()

        public_dir = Path(build_dir).parent / "public"
        staging = self.stage(Path(build_dir), Path(env_file), public_dir)
        self.swap(staging)

        # copies reset ownership and mode
        logger.info("Final permission check...")
        self.apply_permissions()
        return self.deploy_dir
