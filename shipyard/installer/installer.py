"""
Idempotent installation of system tools and services.
"""

import getpass
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional

from shipyard.errors import CommandFailed, CommandTimeout, InstallError
from shipyard.settings import Settings
from .tools import REQUIRED_SERVICES, REQUIRED_TOOLS, InstallStep, ToolRequirement

logger = logging.getLogger(__name__)


class InstallOutcome(Enum):
    ALREADY_PRESENT = "already_present"
    INSTALLED = "installed"


class ServiceOutcome(Enum):
    ALREADY_RUNNING = "already_running"
    STARTED = "started"


class DependencyInstaller:
    """Ensures tools, services and the deploy root exist on the host."""

    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings
        self._index_refreshed = False

    def is_present(self, tool: ToolRequirement) -> bool:
        return self.runner.which(tool.binary) is not None

    def ensure(self, tool: ToolRequirement) -> InstallOutcome:
        """
        Install a tool unless it is already on PATH.

        Returns:
            ALREADY_PRESENT without running any command, or INSTALLED

        Raises:
            InstallError: If an install step fails or the tool is still absent
        """
        if self.is_present(tool):
            logger.debug("%s already present", tool.name)
            return InstallOutcome.ALREADY_PRESENT

        logger.info("Installing %s...", tool.name)
        for step in tool.steps + tool.post_install:
            self._run_step(tool, step)

        if not self.is_present(tool):
            raise InstallError(
                f"{tool.name} still not found after install",
                hint=f"Check that '{tool.binary}' is on PATH",
            )
        return InstallOutcome.INSTALLED

    def ensure_all(self, tools: Iterable[ToolRequirement] = REQUIRED_TOOLS) -> Dict[str, InstallOutcome]:
        return {tool.name: self.ensure(tool) for tool in tools}

    def refresh_index(self) -> None:
        """Refresh the apt package index once per run."""
        if self._index_refreshed:
            return
        logger.info("Updating system packages...")
        try:
            self.runner.run(["sudo", "apt-get", "update"], timeout=self.settings.timeouts.install)
        except (CommandFailed, CommandTimeout) as e:
            raise InstallError(f"Package index update failed: {e}") from e
        self._index_refreshed = True

    def _run_step(self, tool: ToolRequirement, step: InstallStep) -> None:
        if step.needs_index:
            self.refresh_index()
        timeout = self.settings.timeouts.install
        try:
            stdin: Optional[str] = None
            if step.stdin_from:
                stdin = self.runner.run(step.stdin_from, timeout=timeout).stdout
            self.runner.run(step.command, input=stdin, timeout=timeout)
        except (CommandFailed, CommandTimeout) as e:
            raise InstallError(f"Installing {tool.name} failed: {e}") from e

    def ensure_service(self, name: str) -> ServiceOutcome:
        """Start and enable a systemd service when it is not active."""
        status = self.runner.run(["sudo", "systemctl", "is-active", "--quiet", name], check=False)
        if status.ok:
            return ServiceOutcome.ALREADY_RUNNING

        logger.warning("Starting %s...", name)
        try:
            self.runner.run(["sudo", "systemctl", "start", name])
            self.runner.run(["sudo", "systemctl", "enable", name])
        except (CommandFailed, CommandTimeout) as e:
            raise InstallError(f"Could not start service {name}: {e}") from e
        return ServiceOutcome.STARTED

    def ensure_services(self, names: Iterable[str] = REQUIRED_SERVICES) -> Dict[str, ServiceOutcome]:
        return {name: self.ensure_service(name) for name in names}

    def ensure_deploy_root(self) -> InstallOutcome:
        """Create the deploy root owned by the running user."""
        root = Path(self.settings.deploy.root)
        if root.is_dir() and root.stat().st_uid == os.getuid():
            return InstallOutcome.ALREADY_PRESENT

        user = getpass.getuser()
        try:
            self.runner.run(["sudo", "mkdir", "-p", str(root)])
            self.runner.run(["sudo", "chown", "-R", f"{user}:{user}", str(root)])
        except (CommandFailed, CommandTimeout) as e:
            raise InstallError(f"Could not prepare {root}: {e}") from e
        return InstallOutcome.INSTALLED

    def collect_versions(self, tools: Iterable[ToolRequirement] = REQUIRED_TOOLS) -> Dict[str, str]:
        """Report installed versions for the setup summary."""
        versions: Dict[str, str] = {}
        for tool in tools:
            if not tool.version_args:
                continue
            # nginx lives in /usr/sbin, which is not on an unprivileged PATH
            binary = self.runner.which(tool.binary) or tool.binary
            try:
                result = self.runner.run([binary] + tool.version_args, check=False)
            except (CommandFailed, CommandTimeout) as e:
                logger.warning("Could not read %s version: %s", tool.name, e)
                versions[tool.name] = "unknown"
                continue
            # nginx -v prints to stderr
            text = result.output.strip().splitlines()
            versions[tool.name] = text[0] if (result.ok and text) else "unknown"
        return versions
