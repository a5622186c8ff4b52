"""Main CLI entrypoint for shipyard."""

import functools
import json
import logging
import os
import sys
from typing import Any, Dict, Optional

import click

from ..envman import redact_secrets
from ..errors import CommandFailed, ConfigError, HealthCheckFailed, LockHeld, ShipyardError, StageFailed
from ..events import get_status_from_events, read_events
from ..health import HealthReport
from ..pipeline import RunContext, Stage, run_deploy, run_setup
from ..runner import CommandRunner, tail
from ..settings import Settings, load_settings
from ..state import list_runs
from ..supervisor import SupervisorDriver

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_FAILED = 1
EXIT_LOCKED = 2


def _configure_logging(verbose: bool) -> None:
    level_name = os.environ.get("SHIPYARD_LOG_LEVEL", "DEBUG" if verbose else "WARNING")
    level = getattr(logging, level_name.upper(), logging.WARNING)
    if verbose:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _ok(message: str) -> None:
    click.secho(f"✅ {message}", fg="green")


def _warn(message: str) -> None:
    click.secho(f"⚠️  {message}", fg="yellow")


def _error(message: str) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)


def common_options(fn):
    @click.option("--config", "config_path", type=click.Path(dir_okay=False),
                  help="Settings file (default: shipyard.yaml or $SHIPYARD_CONFIG)")
    @click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
    @functools.wraps(fn)
    def wrapper(*args, config_path=None, verbose=False, **kwargs):
        _configure_logging(verbose)
        try:
            settings = load_settings(config_path)
        except ConfigError as e:
            _error(e.message)
            sys.exit(EXIT_FAILED)
        return fn(*args, settings=settings, **kwargs)
    return wrapper


def _print_stage(stage: Stage, status: str, payload: Any = None) -> None:
    if status == "start":
        click.echo(f"📋 {stage.title}...")
        return

    _ok(stage.title)
    if isinstance(payload, HealthReport):
        _print_report(payload)
    elif isinstance(payload, dict) and stage.name != "preflight":
        for name, value in payload.items():
            click.echo(f"   {name}: {getattr(value, 'value', value)}")


def _print_report(report: HealthReport) -> None:
    for check in report.checks:
        if check.ok:
            click.echo(f"   ✅ {check.name}: {check.detail}")
        elif check.critical:
            click.secho(f"   ❌ {check.name}: {check.detail}", fg="red")
        else:
            click.secho(f"   ⚠️  {check.name}: {check.detail}", fg="yellow")


def _command_output(error: BaseException) -> Optional[str]:
    """Captured output of the first CommandFailed in the cause chain."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, CommandFailed) and current.output:
            return current.output
        current = getattr(current, "cause", None) or current.__cause__
    return None


def _fail(error: StageFailed) -> None:
    _error(redact_secrets(error.message))

    cause = error.cause
    if isinstance(cause, HealthCheckFailed):
        if cause.report is not None:
            _print_report(cause.report)
        if cause.logs:
            click.echo("\nRecent application logs:", err=True)
            click.echo(redact_secrets(tail(cause.logs)), err=True)

    output = _command_output(error)
    if output:
        click.echo(redact_secrets(tail(output)), err=True)
    if error.hint:
        click.secho(f"   Hint: {error.hint}", fg="yellow", err=True)
    sys.exit(EXIT_FAILED)


def _run(pipeline, settings: Settings) -> RunContext:
    runner = CommandRunner(default_timeout=settings.timeouts.default)
    try:
        return pipeline(settings, runner, listener=_print_stage)
    except LockHeld as e:
        _error(e.message)
        click.secho(f"   Hint: {e.hint}", fg="yellow", err=True)
        sys.exit(EXIT_LOCKED)
    except StageFailed as e:
        _fail(e)


@click.group()
def main():
    """shipyard - provision a host and deploy RabbitScout behind nginx and PM2."""


@main.command()
@common_options
def setup(settings: Settings):
    """Install tools and services, then scaffold the configuration files."""
    click.echo("🚀 Setting up the environment...")
    ctx = _run(run_setup, settings)

    versions = ctx.results.get("versions", {})
    if versions:
        click.echo("\n📋 Installed Versions:")
        for name, version in versions.items():
            click.echo(f"🟢 {name}: {version}")

    click.echo("")
    _ok("Setup completed successfully!")
    source = settings.source_path
    click.echo("\n📝 Next Steps:")
    click.echo(f"1. Edit {source / settings.app.fallback_env_file} and "
               f"{source / settings.app.env_file} with your actual values")
    click.echo("2. Deploy: shipyard deploy")
    click.echo("\n🔍 Useful URLs:")
    click.echo("🌐 RabbitMQ Management: http://localhost:15672 (guest/guest)")
    click.echo("🐰 Your app will be at: http://localhost (after deployment)")


@main.command()
@common_options
def deploy(settings: Settings):
    """Build, publish, supervise, expose and verify the application."""
    click.echo(f"🚀 Deploying {settings.app.name}...")
    ctx = _run(run_deploy, settings)

    app = settings.app.name
    report = ctx.results.get("health")
    if isinstance(report, HealthReport):
        for warning in report.warnings:
            _warn(warning.detail)

    click.echo("\n🎉 Deployment completed successfully!")
    click.echo("\n📋 Access Information:")
    click.echo(f"🌐 Your {app} Management UI: http://{settings.proxy.server_name}")
    click.echo("\n📊 Management Commands:")
    click.echo(f"📈 View logs: pm2 logs {app}")
    click.echo(f"🔄 Restart app: pm2 restart {app}")
    click.echo("📊 Monitor: pm2 monit")
    click.echo(f"🛑 Stop app: pm2 stop {app}")
    click.echo("\n🔍 Troubleshooting:")
    click.echo(f"📊 Nginx logs: sudo tail -f {settings.proxy.log_dir}/{settings.proxy.log_prefix}.error.log")
    click.echo("🔧 Test nginx: sudo nginx -t")
    click.echo(f"📋 Run journal: shipyard status {ctx.run_id}")


@main.command()
@click.argument("run_id", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@common_options
def status(run_id: Optional[str], output_json: bool, settings: Settings):
    """Show the last (or given) run and the PM2 state of the application."""
    runs = list_runs(settings)
    run_id = run_id or (runs[0] if runs else None)

    data: Dict[str, Any] = {"app": settings.app.name, "run_id": run_id}
    if run_id:
        try:
            data["run_status"] = get_status_from_events(run_id, settings)
            data["events"] = read_events(run_id, settings)
        except ValueError as e:
            _error(str(e))
            sys.exit(EXIT_FAILED)

    try:
        process = SupervisorDriver(CommandRunner(settings.timeouts.default), settings).status(settings.app.name)
    except ShipyardError as e:
        process = None
        data["process_error"] = e.message
    data["process"] = None if process is None else {
        "state": process.state.value,
        "pid": process.pid,
        "restarts": process.restarts,
        "memory": process.memory,
    }

    if output_json:
        click.echo(json.dumps(data, default=str))
        return

    if not run_id:
        _warn("No runs recorded yet")
    else:
        click.echo(f"Run: {run_id} ({data['run_status']})")
        for event in data["events"]:
            stage = event.get("data", {}).get("stage", "")
            click.echo(f"  {event.get('ts', '')}  {event.get('type', '')}  {stage}".rstrip())

    proc = data["process"]
    if proc is None:
        _warn(data.get("process_error") or f"{settings.app.name} is not registered with PM2")
    elif proc["state"] == "running":
        _ok(f"{settings.app.name} is running (pid {proc['pid']}, {proc['restarts']} restarts)")
    else:
        _error(f"{settings.app.name} is {proc['state']} ({proc['restarts']} restarts)")


def setup_entry():
    main(args=["setup"] + sys.argv[1:], prog_name="shipyard-setup")


def deploy_entry():
    main(args=["deploy"] + sys.argv[1:], prog_name="shipyard-deploy")


if __name__ == "__main__":
    main()
