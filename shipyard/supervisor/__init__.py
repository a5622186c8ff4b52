"""
PM2 supervision: deployment descriptor, restart policy model and CLI driver.
"""

from .descriptor import DeploymentDescriptor, build_descriptor, render_ecosystem
from .driver import ProcessStatus, SupervisorDriver
from .state import ProcessState, RestartPolicy, RestartStateMachine, state_from_pm2

__all__ = [
    "DeploymentDescriptor",
    "build_descriptor",
    "render_ecosystem",
    "ProcessStatus",
    "SupervisorDriver",
    "ProcessState",
    "RestartPolicy",
    "RestartStateMachine",
    "state_from_pm2",
]
