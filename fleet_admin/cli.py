"""
Admin CLI for managing a fleet of container workloads.

Provides one-shot commands that bring the workloads in a file up or down
and report their state, plus queries against a running fleet controller.
"""

import asyncio
import json
import os
import sys

import click

from fleet_common.errors import BatchError, EngineCommandError, LifecycleError
from fleet_common.models import WorkloadSpec, load_workloads
from fleet_controller.manager import LifecycleManager
from fleet_engine.docker_cli import DockerCliEngine

from .client import list_running, list_stopped


def get_server_url() -> str:
    """Get the controller API URL from environment variable or default."""
    return os.environ.get("FLEET_SERVER_URL", "http://localhost:8000")


def get_engine() -> DockerCliEngine:
    """Get an engine client configured from the environment."""
    return DockerCliEngine(docker_bin=os.environ.get("FLEET_DOCKER_BIN", "docker"))


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


def read_workloads(path: str) -> list[WorkloadSpec]:
    try:
        return load_workloads(path)
    except (OSError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def report_batch_error(error: BatchError) -> None:
    click.echo(f"Error: {error.message}", err=True)
    for spec, failure in error.failures:
        click.echo(f"  {spec.container_name}: {failure}", err=True)


def print_workloads(workloads: list[dict], json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(workloads, indent=2))
        return

    if not workloads:
        click.echo("No workloads found.")
        return

    click.echo(f"\n{'Container':<40} {'Image':<40}")
    click.echo("-" * 80)
    for w in workloads:
        click.echo(f"{w['container_name'] or '':<40} {w['image']:<40}")
    click.echo()


@click.group()
def cli():
    """Fleet - Manage container workloads on a single engine host."""
    pass


# ============================================================================
# Engine Commands
# ============================================================================


@cli.command("up")
@click.argument("workload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-concurrency", default=1, show_default=True, type=click.IntRange(min=1))
def up(workload_file: str, max_concurrency: int):
    """Pull images and start every workload in WORKLOAD_FILE."""
    specs = read_workloads(workload_file)

    async def bring_up():
        manager = LifecycleManager(get_engine(), max_concurrency=max_concurrency)
        try:
            await manager.initialize(specs)
        except BatchError as e:
            report_batch_error(e)
            sys.exit(1)

        for spec in manager.list_running():
            click.echo(f"✓ {spec.container_name} running ({spec.image})")

    run_async(bring_up())


@cli.command("down")
@click.argument("workload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--remove", is_flag=True, help="Remove containers after stopping them")
def down(workload_file: str, remove: bool):
    """Stop every workload in WORKLOAD_FILE."""
    specs = read_workloads(workload_file)

    async def bring_down():
        manager = LifecycleManager(get_engine())
        failed = False
        for spec in await manager.initialize(specs, start_containers=False):
            try:
                await manager.stop_one(spec, remove_after_stop=remove)
                click.echo(f"✓ {spec.container_name} {'removed' if remove else 'stopped'}")
            except LifecycleError as e:
                click.echo(f"Error: {e}", err=True)
                failed = True
        if failed:
            sys.exit(1)

    run_async(bring_down())


@cli.command("status")
@click.argument("workload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def status(workload_file: str, json_output: bool):
    """Show the engine's view of every workload in WORKLOAD_FILE."""
    specs = read_workloads(workload_file)

    async def collect():
        engine = get_engine()
        manager = LifecycleManager(engine)
        specs_named = await manager.initialize(specs, start_containers=False)

        try:
            containers = await engine.list_containers(include_stopped=True)
        except (LifecycleError, EngineCommandError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        known = set().union(*(c.names for c in containers)) if containers else set()

        rows = []
        for spec in specs_named:
            row = {"container_name": spec.container_name, "image": spec.image, "status": "missing"}
            if f"/{spec.container_name}" in known:
                try:
                    info = await engine.get_container(spec.container_name).inspect()
                    details = info.to_dict()
                    details.pop("name")
                    row.update(details)
                except (LifecycleError, EngineCommandError) as e:
                    row["status"] = f"error: {e}"
            rows.append(row)
        return rows

    rows = run_async(collect())

    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return

    click.echo(f"\n{'Container':<40} {'Image':<30} {'Status':<10}")
    click.echo("-" * 82)
    for row in rows:
        click.echo(f"{row['container_name']:<40} {row['image']:<30} {row['status']:<10}")
    click.echo()


# ============================================================================
# Controller API Commands
# ============================================================================


@cli.command("running")
@click.option("--server", default=None, help="Controller API URL (default: FLEET_SERVER_URL)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def running(server: str | None, json_output: bool):
    """List workloads a running controller has started."""
    try:
        workloads = list_running(server or get_server_url())
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    print_workloads(workloads, json_output)


@cli.command("stopped")
@click.option("--server", default=None, help="Controller API URL (default: FLEET_SERVER_URL)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def stopped(server: str | None, json_output: bool):
    """List workloads a running controller has stopped."""
    try:
        workloads = list_stopped(server or get_server_url())
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    print_workloads(workloads, json_output)


if __name__ == "__main__":
    cli()
