"""
Stage pipeline for the setup and deploy entrypoints.

Stages run strictly in order. The first stage that raises stops the run and
the error is re-raised as StageFailed naming that stage. Each run holds the
pipeline lock and writes a journal of NDJSON events.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import preflight
from .build import BuildRunner
from .envman import EnvironmentProfile, load_profile, redact_secrets
from .errors import HealthCheckFailed, StageFailed
from .events import EventTypes, emit_event
from .health import HealthVerifier
from .ids import new_run_id
from .installer import DependencyInstaller
from .lock import PipelineLock
from .proxy import ProxyConfigurator, build_site
from .publish import DeploymentPublisher
from .scaffold import ConfigScaffolder
from .settings import Settings
from .source import SourceFetcher
from .state import create_run_dir, lock_path
from .supervisor import SupervisorDriver, build_descriptor

logger = logging.getLogger(__name__)


@dataclass
class Stage:
    name: str
    title: str
    action: Callable[["RunContext"], Any]


@dataclass
class RunContext:
    """Everything a stage may read; stages pass values on through `results`."""
    settings: Settings
    runner: Any
    run_id: Optional[str] = None
    results: Dict[str, Any] = field(default_factory=dict)
    profile: Optional[EnvironmentProfile] = None
    env_file: Optional[Path] = None
    port: Optional[int] = None


StageListener = Callable[[Stage, str, Any], None]


def _summarize(result: Any) -> Any:
    if isinstance(result, Enum):
        return result.value
    if isinstance(result, Path):
        return str(result)
    if isinstance(result, dict):
        return {str(k): _summarize(v) for k, v in result.items()}
    if isinstance(result, (str, int, float, bool)) or result is None:
        return result
    return type(result).__name__


class Pipeline:
    def __init__(self, name: str, stages: List[Stage], listener: Optional[StageListener] = None,
                 journal: bool = True):
        self.name = name
        self.stages = stages
        self.listener = listener
        self.journal = journal

    def _notify(self, stage: Stage, status: str, payload: Any = None) -> None:
        if self.listener:
            self.listener(stage, status, payload)

    def _emit(self, ctx: RunContext, event_type: str, data: Dict[str, Any]) -> None:
        if self.journal and ctx.run_id:
            emit_event(ctx.run_id, event_type, data, ctx.settings)

    def run(self, ctx: RunContext) -> RunContext:
        """
        Run every stage under the pipeline lock.

        Raises:
            LockHeld: If another run holds the lock
            StageFailed: On the first failing stage; later stages never run
        """
        with PipelineLock(lock_path(ctx.settings)):
            if self.journal:
                ctx.run_id = ctx.run_id or new_run_id()
                create_run_dir(ctx.run_id, ctx.settings)
            logger.info("Starting %s run %s", self.name, ctx.run_id or "")
            self._emit(ctx, EventTypes.RUN_START, {"pipeline": self.name, "app": ctx.settings.app.name})

            for stage in self.stages:
                self._emit(ctx, EventTypes.STAGE_START, {"stage": stage.name})
                self._notify(stage, "start")
                try:
                    result = stage.action(ctx)
                except Exception as e:
                    logger.debug("Stage %s raised", stage.name, exc_info=True)
                    self._emit(ctx, EventTypes.STAGE_FAILED, {
                        "stage": stage.name,
                        "error": type(e).__name__,
                        "message": redact_secrets(str(e)),
                    })
                    self._emit(ctx, EventTypes.RUN_DONE, {"ok": False, "failed_stage": stage.name})
                    raise StageFailed(stage.name, e) from e

                ctx.results[stage.name] = result
                self._emit(ctx, EventTypes.STAGE_DONE, {"stage": stage.name, "result": _summarize(result)})
                self._notify(stage, "done", result)

            self._emit(ctx, EventTypes.RUN_DONE, {"ok": True})
        return ctx


# Setup stages

def _setup_preflight(ctx: RunContext):
    fetcher = SourceFetcher(ctx.runner, ctx.settings)
    return preflight.check(preflight.setup_tools(fetcher.needs_clone()), ctx.runner).tools


def _install_tools(ctx: RunContext):
    return DependencyInstaller(ctx.runner, ctx.settings).ensure_all()


def _deploy_root(ctx: RunContext):
    return DependencyInstaller(ctx.runner, ctx.settings).ensure_deploy_root()


def _fetch_source(ctx: RunContext):
    return SourceFetcher(ctx.runner, ctx.settings).fetch()


def _scaffold(ctx: RunContext):
    return ConfigScaffolder(ctx.settings.source_path).scaffold_project()


def _services(ctx: RunContext):
    return DependencyInstaller(ctx.runner, ctx.settings).ensure_services()


def _versions(ctx: RunContext):
    return DependencyInstaller(ctx.runner, ctx.settings).collect_versions()


def setup_stages() -> List[Stage]:
    return [
        Stage("preflight", "Checking prerequisites", _setup_preflight),
        Stage("install", "Installing system dependencies", _install_tools),
        Stage("deploy-root", "Preparing deployment root", _deploy_root),
        Stage("source", "Fetching application source", _fetch_source),
        Stage("scaffold", "Creating configuration files", _scaffold),
        Stage("services", "Starting services", _services),
        Stage("versions", "Collecting installed versions", _versions),
    ]


# Deploy stages

def _deploy_preflight(ctx: RunContext):
    fetcher = SourceFetcher(ctx.runner, ctx.settings)
    return preflight.check(preflight.deploy_tools(fetcher.needs_clone()), ctx.runner).tools


def _load_env(ctx: RunContext):
    env_file = BuildRunner(ctx.runner, ctx.settings).resolve_env_file()
    profile = load_profile(env_file)
    profile.require()
    ctx.env_file = env_file
    ctx.profile = profile
    ctx.port = profile.port(ctx.settings.app.port)
    return env_file


def _build(ctx: RunContext):
    return BuildRunner(ctx.runner, ctx.settings).build(ctx.profile)


def _publish(ctx: RunContext):
    return DeploymentPublisher(ctx.runner, ctx.settings).publish(ctx.results["build"], ctx.env_file)


def _supervise(ctx: RunContext):
    driver = SupervisorDriver(ctx.runner, ctx.settings)
    descriptor = build_descriptor(ctx.settings, ctx.profile, ctx.settings.deploy_dir)
    driver.redeploy(descriptor)
    return descriptor.name


def _proxy(ctx: RunContext):
    site = build_site(ctx.settings, ctx.port)
    return ProxyConfigurator(ctx.runner, ctx.settings).configure(site)


def _health(ctx: RunContext):
    driver = SupervisorDriver(ctx.runner, ctx.settings)
    report = HealthVerifier(ctx.runner, ctx.settings, driver).verify(ctx.settings.app.name, ctx.port)
    if not report.ok:
        logs = driver.logs_tail(ctx.settings.app.name, ctx.settings.health.log_lines)
        raise HealthCheckFailed(report.failed, report=report, logs=logs)
    return report


def deploy_stages() -> List[Stage]:
    return [
        Stage("preflight", "Checking prerequisites", _deploy_preflight),
        Stage("source", "Fetching application source", _fetch_source),
        Stage("env", "Loading environment profile", _load_env),
        Stage("build", "Building application", _build),
        Stage("publish", "Publishing build", _publish),
        Stage("supervisor", "Starting application with PM2", _supervise),
        Stage("proxy", "Configuring nginx", _proxy),
        Stage("health", "Verifying deployment", _health),
    ]


def run_setup(settings: Settings, runner, listener: Optional[StageListener] = None) -> RunContext:
    return Pipeline("setup", setup_stages(), listener).run(RunContext(settings, runner))


def run_deploy(settings: Settings, runner, listener: Optional[StageListener] = None) -> RunContext:
    return Pipeline("deploy", deploy_stages(), listener).run(RunContext(settings, runner))
