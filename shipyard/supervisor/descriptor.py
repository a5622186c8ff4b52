from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

from shipyard.envman import EnvironmentProfile
from shipyard.settings import Settings
from .state import RestartPolicy

ECOSYSTEM_FILE = "ecosystem.config.js"


@dataclass
class DeploymentDescriptor:
    name: str
    script: str
    cwd: str
    env: Dict[str, Union[str, int]]
    policy: RestartPolicy
    max_memory_restart: str = "1G"
    instances: int = 1
    exec_mode: str = "fork"
    watch: bool = False
    error_file: str = "./logs/err.log"
    out_file: str = "./logs/out.log"
    log_file: str = "./logs/combined.log"
    time: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_pm2(self) -> Dict[str, Any]:
        app = {
            "name": self.name,
            "script": self.script,
            "cwd": self.cwd,
            "env": dict(self.env),
            "instances": self.instances,
            "exec_mode": self.exec_mode,
            "watch": self.watch,
            "max_memory_restart": self.max_memory_restart,
            "error_file": self.error_file,
            "out_file": self.out_file,
            "log_file": self.log_file,
            "time": self.time,
            "restart_delay": int(self.policy.restart_delay * 1000),
            "max_restarts": self.policy.max_restarts,
            "min_uptime": f"{self.policy.min_uptime:g}s",
        }
        app.update(self.extra)
        return app


def build_descriptor(settings: Settings, profile: EnvironmentProfile, deploy_dir: Path) -> DeploymentDescriptor:
    port = profile.port(settings.app.port)
    env: Dict[str, Union[str, int]] = dict(profile.as_env())
    env["NODE_ENV"] = "production"
    env["PORT"] = port
    return DeploymentDescriptor(
        name=settings.app.name,
        script=settings.app.entry_script,
        cwd=str(deploy_dir),
        env=env,
        policy=RestartPolicy.from_settings(settings.restart),
        max_memory_restart=settings.restart.max_memory,
    )


def render_ecosystem(descriptor: DeploymentDescriptor) -> str:
    # JSON is a valid JS object literal and escapes credential values safely
    body = json.dumps({"apps": [descriptor.to_pm2()]}, indent=2)
    return f"// Generated by shipyard on every deploy. Manual edits are overwritten.\nmodule.exports = {body}\n"
