"""
Host provisioning: system tools and services the deployment relies on.
"""

from .installer import DependencyInstaller, InstallOutcome, ServiceOutcome
from .tools import REQUIRED_TOOLS, REQUIRED_SERVICES, ToolRequirement, InstallStep

__all__ = [
    "DependencyInstaller",
    "InstallOutcome",
    "ServiceOutcome",
    "REQUIRED_TOOLS",
    "REQUIRED_SERVICES",
    "ToolRequirement",
    "InstallStep",
]
