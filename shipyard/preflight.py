"""
Preflight checks run before any stage touches the host.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .errors import MissingTool, RunningAsPrivilegedUser

logger = logging.getLogger(__name__)

SETUP_TOOLS = ["sudo", "curl", "apt-get", "systemctl"]
DEPLOY_TOOLS = ["sudo", "systemctl", "yarn", "pm2", "nginx"]


@dataclass
class PreflightReport:
    tools: Dict[str, str] = field(default_factory=dict)


def setup_tools(needs_clone: bool) -> List[str]:
    return SETUP_TOOLS + (["git"] if needs_clone else [])


def deploy_tools(needs_clone: bool) -> List[str]:
    return DEPLOY_TOOLS + (["git"] if needs_clone else [])


def check(required: Iterable[str], runner) -> PreflightReport:
    """
    Verify the pipeline runs unprivileged and every required tool is on PATH.

    All missing tools are collected before raising so the operator gets the
    complete list in one run.

    Raises:
        RunningAsPrivilegedUser: If the effective user is root
        MissingTool: If any required tool is not found
    """
    if runner.is_root():
        raise RunningAsPrivilegedUser()

    report = PreflightReport()
    missing: List[str] = []
    for name in required:
        path = runner.which(name)
        if path:
            report.tools[name] = path
        elif name not in missing:
            missing.append(name)

    if missing:
        raise MissingTool(missing)

    logger.info("Preflight ok: %s", ", ".join(report.tools))
    return report
