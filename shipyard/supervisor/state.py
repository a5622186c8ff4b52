"""
Restart policy model for a supervised process.

Mirrors how PM2 applies max_restarts / min_uptime / restart_delay: a crash
before min_uptime counts as an unstable restart, a crash after a stable run
resets the count, and once max_restarts unstable restarts have been spent the
process is left stopped.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from shipyard.settings import RestartSettings


class ProcessState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    CRASH_LOOP_BACKOFF = "crash_loop_backoff"
    GIVEN_UP = "given_up"


@dataclass
class RestartPolicy:
    max_restarts: int = 10
    min_uptime: float = 10.0    # seconds
    restart_delay: float = 4.0  # seconds

    @classmethod
    def from_settings(cls, settings: RestartSettings) -> "RestartPolicy":
        return cls(
            max_restarts=settings.max_restarts,
            min_uptime=settings.min_uptime_seconds,
            restart_delay=settings.restart_delay_ms / 1000.0,
        )


class InvalidTransition(Exception):
    """Raised when an event is not valid in the current state."""


class RestartStateMachine:
    """Tracks one supervised process through starts, crashes and restarts."""

    TRANSITIONS = {
        ProcessState.STOPPED: [ProcessState.STARTING],
        ProcessState.STARTING: [ProcessState.RUNNING, ProcessState.CRASH_LOOP_BACKOFF,
                                ProcessState.GIVEN_UP, ProcessState.STOPPED],
        ProcessState.RUNNING: [ProcessState.CRASH_LOOP_BACKOFF, ProcessState.GIVEN_UP,
                               ProcessState.STOPPED],
        ProcessState.CRASH_LOOP_BACKOFF: [ProcessState.STARTING, ProcessState.STOPPED],
        ProcessState.GIVEN_UP: [ProcessState.STARTING, ProcessState.STOPPED],
    }

    def __init__(self, policy: RestartPolicy, clock: Callable[[], float] = time.monotonic):
        self.policy = policy
        self.clock = clock
        self.state = ProcessState.STOPPED
        self.restarts = 0
        self.unstable_restarts = 0
        self.started_at: Optional[float] = None
        self.next_start_at: Optional[float] = None

    def _move(self, target: ProcessState) -> ProcessState:
        if target not in self.TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        self.state = target
        return target

    def start(self) -> ProcessState:
        """Explicit start by the operator; resets the restart budget."""
        self._move(ProcessState.STARTING)
        self.restarts = 0
        self.unstable_restarts = 0
        self.started_at = self.clock()
        self.next_start_at = None
        return self.state

    def mark_running(self) -> ProcessState:
        return self._move(ProcessState.RUNNING)

    def crash(self) -> ProcessState:
        if self.state not in (ProcessState.STARTING, ProcessState.RUNNING):
            raise InvalidTransition(f"crash while {self.state.value}")

        now = self.clock()
        if self.started_at is not None and now - self.started_at >= self.policy.min_uptime:
            self.unstable_restarts = 0

        if self.unstable_restarts >= self.policy.max_restarts:
            return self._move(ProcessState.GIVEN_UP)

        self.unstable_restarts += 1
        self.restarts += 1
        self.next_start_at = now + self.policy.restart_delay
        return self._move(ProcessState.CRASH_LOOP_BACKOFF)

    def tick(self) -> ProcessState:
        """Perform the automatic restart once the restart delay has elapsed."""
        if self.state is ProcessState.CRASH_LOOP_BACKOFF and self.clock() >= (self.next_start_at or 0):
            self._move(ProcessState.STARTING)
            self.started_at = self.clock()
            self.next_start_at = None
        return self.state

    def stop(self) -> ProcessState:
        if self.state is ProcessState.STOPPED:
            return self.state
        return self._move(ProcessState.STOPPED)

    @property
    def budget_remaining(self) -> int:
        return max(self.policy.max_restarts - self.unstable_restarts, 0)


PM2_STATUS = {
    "online": ProcessState.RUNNING,
    "launching": ProcessState.STARTING,
    "waiting restart": ProcessState.CRASH_LOOP_BACKOFF,
    "stopping": ProcessState.STOPPED,
    "stopped": ProcessState.STOPPED,
    # PM2 marks a process errored once it stops restarting it
    "errored": ProcessState.GIVEN_UP,
}


def state_from_pm2(status: str) -> ProcessState:
    """Map a PM2 process status onto ProcessState."""
    return PM2_STATUS.get(status, ProcessState.STOPPED)
