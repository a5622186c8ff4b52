"""
Shared fixtures: isolated settings and a scripted command runner.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import pytest

from shipyard.errors import CommandFailed
from shipyard.runner import CommandResult
from shipyard.settings import Settings


@dataclass
class Call:
    argv: List[str]
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    input: Optional[str] = None
    timeout: Optional[float] = None


@dataclass
class Rule:
    prefix: List[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    raises: Optional[Exception] = None
    effect: Optional[Callable[[List[str]], None]] = None


class FakeRunner:
    """
    Stands in for CommandRunner.

    Commands are matched against rules by argv prefix, the most recently added
    matching rule wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, tools=(), root: bool = False):
        self.tools = set(tools)
        self.root = root
        self.rules: List[Rule] = []
        self.calls: List[Call] = []

    def on(self, *prefix, returncode=0, stdout="", stderr="", raises=None, effect=None) -> "FakeRunner":
        self.rules.append(Rule(list(prefix), returncode, stdout, stderr, raises, effect))
        return self

    def run(self, command, *, sudo=False, cwd=None, env=None, input=None, timeout=None, check=True):
        argv = (["sudo"] if sudo else []) + list(command)
        self.calls.append(Call(argv, cwd, env, input, timeout))

        rule = next((r for r in reversed(self.rules) if argv[:len(r.prefix)] == r.prefix), None)
        if rule is None:
            return CommandResult(argv, 0)
        if rule.effect:
            rule.effect(argv)
        if rule.raises:
            raise rule.raises
        result = CommandResult(argv, rule.returncode, rule.stdout, rule.stderr)
        if check and not result.ok:
            raise CommandFailed(argv, result.returncode, result.output)
        return result

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.tools else None

    def is_root(self):
        return self.root

    @property
    def commands(self) -> List[str]:
        return [" ".join(c.argv) for c in self.calls]

    def ran(self, *prefix) -> bool:
        return any(c.argv[:len(prefix)] == list(prefix) for c in self.calls)

    def calls_to(self, *prefix) -> List[Call]:
        return [c for c in self.calls if c.argv[:len(prefix)] == list(prefix)]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SHIPYARD_HOME", "SHIPYARD_CONFIG", "SHIPYARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path):
    s = Settings()
    s.app.source_dir = str(tmp_path / "app")
    s.deploy.root = str(tmp_path / "www")
    s.proxy.sites_available = str(tmp_path / "nginx" / "sites-available")
    s.proxy.sites_enabled = str(tmp_path / "nginx" / "sites-enabled")
    s.proxy.nginx_conf = str(tmp_path / "nginx" / "nginx.conf")
    s.state_dir = str(tmp_path / "state")
    s.lock_dir = str(tmp_path / "locks")
    s.health.settle_seconds = 0
    return s


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def runner():
    return FakeRunner()


VALID_ENV = """\
# RabbitMQ
PORT=3456
NEXT_PUBLIC_RABBITMQ_HOST=localhost
NEXT_PUBLIC_RABBITMQ_PORT=15672
NEXT_PUBLIC_RABBITMQ_VHOST=/
RABBITMQ_USERNAME=scout
RABBITMQ_PASSWORD=hunter2
"""


@pytest.fixture
def valid_env_text():
    return VALID_ENV
