"""
Health Verifier: independent post-deploy checks.

Supervisor and proxy checks are hard checks. The listener and HTTP checks
are warnings only, since listener detection can race the process start.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, List

from shipyard.errors import CommandFailed, CommandTimeout, ShipyardError
from shipyard.settings import Settings
from shipyard.supervisor import ProcessState, SupervisorDriver
from .smoke import run_smoke_check

logger = logging.getLogger(__name__)


@dataclass
class HealthCheck:
    name: str
    ok: bool
    detail: str
    critical: bool = True


@dataclass
class HealthReport:
    checks: List[HealthCheck] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(c.ok for c in self.checks if c.critical)

    @property
    def failed(self) -> List[str]:
        return [c.name for c in self.checks if c.critical and not c.ok]

    @property
    def warnings(self) -> List[HealthCheck]:
        return [c for c in self.checks if not c.critical and not c.ok]


class HealthVerifier:
    def __init__(self, runner, settings: Settings, supervisor: SupervisorDriver,
                 sleep: Callable[[float], None] = time.sleep):
        self.runner = runner
        self.settings = settings
        self.supervisor = supervisor
        self.sleep = sleep

    def check_supervisor(self, app_name: str) -> HealthCheck:
        try:
            status = self.supervisor.status(app_name)
        except ShipyardError as e:
            return HealthCheck("supervisor", False, str(e))
        if status is None:
            return HealthCheck("supervisor", False, f"{app_name} is not registered with PM2")
        if status.state is not ProcessState.RUNNING:
            return HealthCheck("supervisor", False,
                               f"{app_name} is {status.state.value} after {status.restarts} restarts")
        return HealthCheck("supervisor", True, f"{app_name} is running (pid {status.pid})")

    def check_proxy(self) -> HealthCheck:
        result = self.runner.run(["sudo", "systemctl", "is-active", "--quiet", "nginx"], check=False)
        if result.ok:
            return HealthCheck("proxy", True, "Nginx is running")
        return HealthCheck("proxy", False, "Nginx is not running")

    def _listeners(self) -> str:
        for command in (["ss", "-tuln"], ["netstat", "-tuln"]):
            try:
                result = self.runner.run(command, check=False)
            except (CommandFailed, CommandTimeout):
                continue
            if result.ok:
                return result.stdout
        return ""

    def check_listener(self, port: int) -> HealthCheck:
        pattern = re.compile(rf":{port}(\s|$)")
        if any(pattern.search(line) for line in self._listeners().splitlines()):
            return HealthCheck("listener", True, f"Listening on port {port}", critical=False)
        return HealthCheck("listener", False, f"Port {port} might not be open", critical=False)

    def check_http(self, port: int) -> HealthCheck:
        result = run_smoke_check(f"http://127.0.0.1:{port}", timeout=self.settings.health.http_timeout)
        return HealthCheck("http", result.success, result.message, critical=False)

    def verify(self, app_name: str, expected_port: int) -> HealthReport:
        """Run every check and report each result; nothing here raises."""
        if self.settings.health.settle_seconds > 0:
            self.sleep(self.settings.health.settle_seconds)

        logger.info("Checking deployment status...")
        report = HealthReport()
        report.checks.append(self.check_supervisor(app_name))
        report.checks.append(self.check_proxy())
        report.checks.append(self.check_listener(expected_port))
        report.checks.append(self.check_http(expected_port))

        for check in report.checks:
            log = logger.info if check.ok else (logger.error if check.critical else logger.warning)
            log("%s: %s", check.name, check.detail)
        return report
