"""
Error taxonomy for the provisioning and deployment pipeline.

Every stage raises a subclass of ShipyardError. The pipeline wraps whatever a
stage raises in StageFailed so the CLI can name the failing stage.
"""

from typing import List, Optional


class ShipyardError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConfigError(ShipyardError):
    """Invalid or unreadable settings file."""


class EnvProfileError(ShipyardError):
    """Environment profile missing, malformed or incomplete."""

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None, hint: Optional[str] = None):
        super().__init__(message, hint)
        self.missing_keys = list(missing_keys or [])


class CommandFailed(ShipyardError):
    """An external command exited non-zero."""

    def __init__(self, command: List[str], returncode: int, output: str = ""):
        super().__init__(f"Command failed ({returncode}): {' '.join(command)}")
        self.command = list(command)
        self.returncode = returncode
        self.output = output


class CommandTimeout(ShipyardError):
    """An external command did not finish within its timeout."""

    def __init__(self, command: List[str], timeout: float):
        super().__init__(
            f"Command timed out after {timeout:g}s: {' '.join(command)}",
            hint="Raise the matching value under 'timeouts' in shipyard.yaml",
        )
        self.command = list(command)
        self.timeout = timeout


class LockHeld(ShipyardError):
    """Another pipeline run holds the lock for this application."""

    def __init__(self, lock_path: str, owner_pid: Optional[int] = None):
        owner = f" (PID {owner_pid})" if owner_pid else ""
        super().__init__(
            f"Another shipyard run is in progress{owner}",
            hint=f"If this is stale, delete {lock_path} and retry",
        )
        self.lock_path = lock_path
        self.owner_pid = owner_pid


# Preflight

class PreflightError(ShipyardError):
    """Host is not in a state the pipeline can run from."""


class RunningAsPrivilegedUser(PreflightError):
    def __init__(self):
        super().__init__(
            "This command should not be run as root for security reasons",
            hint="Run as a regular user with sudo rights",
        )


class MissingTool(PreflightError):
    """One or more required tools are not on PATH."""

    def __init__(self, names: List[str]):
        self.names = list(names)
        super().__init__(
            f"Missing required tools: {', '.join(self.names)}",
            hint="Run 'shipyard setup' to provision the host",
        )


# Stage errors

class InstallError(ShipyardError):
    """Package manager or service command failed."""


class ScaffoldError(ShipyardError):
    """Config artifact could not be read or written."""


class SourceError(ShipyardError):
    """Application checkout is missing and could not be cloned."""


class BuildError(ShipyardError):
    """Dependency install or build command failed."""


class ArtifactMissing(BuildError):
    """Build reported success but the expected output is absent."""

    def __init__(self, path: str):
        super().__init__(
            f"Build failed. {path} not found",
            hint="Check that next.config.js sets output: 'standalone'",
        )
        self.path = path


class PublishError(ShipyardError):
    """Copy or permission change in the deployment directory failed."""


class SupervisorError(ShipyardError):
    """PM2 start, save or startup registration failed."""


class ProxyError(ShipyardError):
    """nginx site write, enable or reload failed."""


class ConfigValidationFailed(ProxyError):
    """nginx -t rejected the configuration; nothing was reloaded."""

    def __init__(self, output: str = ""):
        super().__init__("Nginx configuration test failed", hint="Run 'sudo nginx -t' for details")
        self.output = output


class HealthCheckFailed(ShipyardError):
    """A hard health check failed after deployment."""

    def __init__(self, failed: List[str], report=None, logs: str = ""):
        super().__init__(
            f"Health checks failed: {', '.join(failed)}",
            hint="Check the application logs with 'pm2 logs'",
        )
        self.failed = list(failed)
        self.report = report
        self.logs = logs


class StageFailed(ShipyardError):
    """Wraps the error raised by a pipeline stage."""

    def __init__(self, stage: str, cause: Exception):
        hint = getattr(cause, "hint", None)
        super().__init__(f"{stage} failed: {cause}", hint=hint)
        self.stage = stage
        self.cause = cause
