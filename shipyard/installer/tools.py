"""
Registry of the tools a RabbitScout host needs, and how to install each.
"""

from dataclasses import dataclass, field
from typing import List, Optional

NODESOURCE_SETUP_URL = "https://deb.nodesource.com/setup_18.x"


@dataclass
class InstallStep:
    command: List[str]                      # full argv, including sudo where needed
    stdin_from: Optional[List[str]] = None  # output of this command is piped into `command`
    needs_index: bool = False               # apt step: package index must be refreshed first


@dataclass
class ToolRequirement:
    name: str
    binary: str
    version_args: List[str]
    steps: List[InstallStep]
    post_install: List[InstallStep] = field(default_factory=list)


def apt_install(package: str) -> InstallStep:
    return InstallStep(["sudo", "apt-get", "install", "-y", package], needs_index=True)


NODE = ToolRequirement(
    name="Node.js",
    binary="node",
    version_args=["--version"],
    steps=[
        InstallStep(["sudo", "-E", "bash", "-"], stdin_from=["curl", "-fsSL", NODESOURCE_SETUP_URL]),
        apt_install("nodejs"),
    ],
)

YARN = ToolRequirement(
    name="Yarn",
    binary="yarn",
    version_args=["--version"],
    steps=[InstallStep(["sudo", "npm", "install", "-g", "yarn"])],
)

PM2 = ToolRequirement(
    name="PM2",
    binary="pm2",
    version_args=["--version"],
    steps=[InstallStep(["sudo", "npm", "install", "-g", "pm2"])],
)

NGINX = ToolRequirement(
    name="Nginx",
    binary="nginx",
    version_args=["-v"],
    steps=[apt_install("nginx")],
)

RABBITMQ = ToolRequirement(
    name="RabbitMQ",
    binary="rabbitmq-server",
    version_args=[],
    steps=[apt_install("rabbitmq-server")],
    post_install=[
        InstallStep(["sudo", "rabbitmq-plugins", "enable", "rabbitmq_management"]),
        InstallStep(["sudo", "systemctl", "start", "rabbitmq-server"]),
        InstallStep(["sudo", "systemctl", "enable", "rabbitmq-server"]),
    ],
)

# Order matters: yarn and pm2 are installed through npm, which ships with Node.js
REQUIRED_TOOLS = [NODE, YARN, PM2, NGINX, RABBITMQ]

REQUIRED_SERVICES = ["nginx", "rabbitmq-server"]
