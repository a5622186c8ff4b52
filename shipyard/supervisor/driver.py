"""
PM2 driver: replaces the running instance with a freshly described one.
"""

import getpass
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from shipyard.errors import CommandFailed, CommandTimeout, SupervisorError
from shipyard.settings import Settings
from .descriptor import ECOSYSTEM_FILE, DeploymentDescriptor, render_ecosystem
from .state import ProcessState, state_from_pm2

logger = logging.getLogger(__name__)


@dataclass
class ProcessStatus:
    name: str
    state: ProcessState
    pid: Optional[int] = None
    restarts: int = 0
    unstable_restarts: int = 0
    memory: Optional[int] = None


class SupervisorDriver:
    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings

    @property
    def descriptor_path(self) -> Path:
        return self.settings.deploy_dir / ECOSYSTEM_FILE

    def write_descriptor(self, descriptor: DeploymentDescriptor) -> Path:
        """Write the ecosystem file with the same ownership as the rest of the deploy dir."""
        path = Path(descriptor.cwd) / ECOSYSTEM_FILE
        logger.info("Creating PM2 configuration...")
        try:
            path.write_text(render_ecosystem(descriptor), encoding="utf-8")
        except OSError as e:
            raise SupervisorError(f"Cannot write {path}: {e}") from e

        owner = f"{getpass.getuser()}:{self.settings.deploy.serving_group}"
        try:
            self.runner.run(["sudo", "chown", owner, str(path)])
            self.runner.run(["sudo", "chmod", self.settings.deploy.mode, str(path)])
        except (CommandFailed, CommandTimeout) as e:
            raise SupervisorError(f"Cannot set permissions on {path}: {e}") from e
        return path

    def stop(self, name: str) -> bool:
        """Stop an instance; a missing instance is not an error."""
        result = self.runner.run(["pm2", "stop", name], check=False)
        if not result.ok:
            logger.info("No existing process found")
        return result.ok

    def delete(self, name: str) -> bool:
        """Remove an instance registration; a missing one is not an error."""
        result = self.runner.run(["pm2", "delete", name], check=False)
        if not result.ok:
            logger.info("No existing process to delete")
        return result.ok

    def _pm2(self, args: List[str], action: str, cwd: Optional[str] = None) -> None:
        try:
            self.runner.run(args, cwd=cwd)
        except (CommandFailed, CommandTimeout) as e:
            raise SupervisorError(f"PM2 {action} failed: {e}") from e

    def start(self, descriptor_path: Path) -> None:
        logger.info("Starting application with PM2...")
        self._pm2(["pm2", "start", str(descriptor_path)], "start", cwd=str(descriptor_path.parent))

    def save(self) -> None:
        self._pm2(["pm2", "save"], "save")

    def register_startup(self) -> None:
        """Register PM2 itself with systemd for the current user."""
        logger.info("Setting up PM2 startup...")
        pm2 = self.runner.which("pm2") or "pm2"
        path = os.pathsep.join([os.environ.get("PATH", ""), "/usr/bin"])
        self._pm2(
            ["sudo", "env", f"PATH={path}", pm2, "startup", "systemd",
             "-u", getpass.getuser(), "--hp", str(Path.home())],
            "startup registration",
        )

    def redeploy(self, descriptor: DeploymentDescriptor) -> None:
        """
        Replace any running instance with the one in `descriptor`.

        Raises:
            SupervisorError: If the descriptor cannot be written or PM2
                start/save/startup fails
        """
        path = self.write_descriptor(descriptor)
        logger.info("Stopping existing processes...")
        self.stop(descriptor.name)
        self.delete(descriptor.name)
        self.start(path)
        self.save()
        self.register_startup()

    def status(self, name: str) -> Optional[ProcessStatus]:
        """Current PM2 status of `name`, or None when it is not registered."""
        try:
            result = self.runner.run(["pm2", "jlist"])
        except (CommandFailed, CommandTimeout) as e:
            raise SupervisorError(f"PM2 jlist failed: {e}") from e

        # pm2 may print update notices before the JSON payload
        text = result.stdout
        start = text.find("[")
        try:
            processes = json.loads(text[start:]) if start >= 0 else []
        except json.JSONDecodeError as e:
            raise SupervisorError(f"Unexpected pm2 jlist output: {e}") from e

        for proc in processes:
            if proc.get("name") != name:
                continue
            env = proc.get("pm2_env", {}) or {}
            monit = proc.get("monit", {}) or {}
            return ProcessStatus(
                name=name,
                state=state_from_pm2(env.get("status", "")),
                pid=proc.get("pid") or None,
                restarts=env.get("restart_time", 0),
                unstable_restarts=env.get("unstable_restarts", 0),
                memory=monit.get("memory"),
            )
        return None

    def logs_tail(self, name: str, lines: int = 20) -> str:
        result = self.runner.run(["pm2", "logs", name, "--lines", str(lines), "--nostream"], check=False)
        return result.output
