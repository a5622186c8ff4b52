"""
External command execution.

Every package manager, build tool, PM2 and nginx call goes through
CommandRunner so that timeouts, privilege escalation and logging are handled
in one place, and tests can substitute a scripted runner.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .errors import CommandFailed, CommandTimeout

logger = logging.getLogger(__name__)

TAIL_LINES = 40
SBIN_DIRS = ["/usr/local/sbin", "/usr/sbin", "/sbin"]


@dataclass
class CommandResult:
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def tail(text: str, lines: int = TAIL_LINES) -> str:
    """Return the last lines of command output for diagnostics."""
    return "\n".join(text.splitlines()[-lines:])


class CommandRunner:
    """Runs external commands synchronously with a timeout."""

    def __init__(self, default_timeout: Optional[float] = 300.0):
        self.default_timeout = default_timeout

    def run(
        self,
        command: Sequence[str],
        *,
        sudo: bool = False,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        input: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> CommandResult:
        """
        Run a command and wait for it to exit.

        Args:
            command: Program and arguments
            sudo: Prefix the command with sudo
            cwd: Working directory
            env: Variables added on top of the inherited environment
            input: Text written to stdin
            timeout: Seconds before CommandTimeout; defaults to default_timeout
            check: Raise CommandFailed on non-zero exit

        Returns:
            CommandResult
        """
        argv = (["sudo"] if sudo else []) + list(command)
        limit = timeout if timeout is not None else self.default_timeout

        child_env = None
        if env:
            child_env = dict(os.environ)
            child_env.update(env)

        logger.debug("$ %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                env=child_env,
                input=input,
                capture_output=True,
                text=True,
                timeout=limit,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(argv, e.timeout) from e
        except FileNotFoundError as e:
            raise CommandFailed(argv, 127, str(e)) from e

        result = CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        if result.stdout:
            logger.debug(tail(result.stdout))
        if check and not result.ok:
            raise CommandFailed(argv, result.returncode, tail(result.output))
        return result

    def which(self, name: str) -> Optional[str]:
        # sbin dirs are often missing from an unprivileged PATH (nginx, rabbitmq-server)
        search = os.pathsep.join([os.environ.get("PATH", "")] + SBIN_DIRS)
        return shutil.which(name, path=search)

    def is_root(self) -> bool:
        return os.geteuid() == 0
