"""
Standalone entrypoint for running the fleet controller.

Starts every workload in a workload file, optionally serves the status
API, and stops the fleet again on SIGINT or SIGTERM.

Usage:
    python -m fleet_controller [OPTIONS]
    fleet-controller [OPTIONS]  (after pip install)

Environment Variables:
    FLEET_WORKLOADS: Workload JSON file (required unless --workloads is given)
    FLEET_DOCKER_BIN: Docker executable (default: docker)
    FLEET_STOP_TIMEOUT: Seconds docker waits on stop before killing (default: 10)
    FLEET_MAX_CONCURRENCY: Workloads processed at once (default: 1)
    FLEET_REMOVE_ON_EXIT: Remove containers after stopping them on exit (default: false)
    FLEET_API_HOST: Status API bind address (default: 127.0.0.1)
    FLEET_API_PORT: Status API port (default: unset, API disabled)
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Any

import uvicorn

from fleet_common.errors import BatchError
from fleet_common.models import load_workloads
from fleet_controller.manager import LifecycleManager
from fleet_engine.docker_cli import DockerCliEngine
from fleet_server.app import create_app

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Fleet Controller - keep a set of container workloads running",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  FLEET_WORKLOADS         Workload JSON file
  FLEET_DOCKER_BIN        Docker executable (default: docker)
  FLEET_STOP_TIMEOUT      Seconds docker waits on stop (default: 10)
  FLEET_MAX_CONCURRENCY   Workloads processed at once (default: 1)
  FLEET_REMOVE_ON_EXIT    Remove containers on exit (default: false)
  FLEET_API_HOST          Status API bind address (default: 127.0.0.1)
  FLEET_API_PORT          Status API port (API disabled when unset)

Note: Command-line arguments override environment variables.

Examples:
  # Start the workloads in fleet.json and keep them running
  fleet-controller --workloads fleet.json

  # Start four workloads at a time and serve the status API
  fleet-controller --workloads fleet.json --max-concurrency 4 --api-port 8000

  # Remove containers when shutting down
  fleet-controller --workloads fleet.json --remove-on-exit
        """,
    )

    parser.add_argument(
        "--workloads",
        type=str,
        default=None,
        help="Workload JSON file (default: FLEET_WORKLOADS env)",
    )

    parser.add_argument(
        "--docker-bin",
        type=str,
        default=None,
        help="Docker executable (default: FLEET_DOCKER_BIN env or docker)",
    )

    parser.add_argument(
        "--stop-timeout",
        type=int,
        default=None,
        help="Seconds docker waits on stop (default: FLEET_STOP_TIMEOUT env or 10)",
    )

    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Workloads processed at once (default: FLEET_MAX_CONCURRENCY env or 1)",
    )

    parser.add_argument(
        "--no-start",
        action="store_true",
        help="Only attach container names; do not contact the engine at startup",
    )

    parser.add_argument(
        "--remove-on-exit",
        action="store_true",
        default=None,
        help="Remove containers after stopping them on exit",
    )

    parser.add_argument(
        "--api-host",
        type=str,
        default=None,
        help="Status API bind address (default: FLEET_API_HOST env or 127.0.0.1)",
    )

    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Status API port (default: FLEET_API_PORT env; API disabled when unset)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def _positive_int(name: str, cli_value: int | None, default: int) -> int:
    """Resolve a positive integer from a CLI arg, then an env var, then a default."""
    if cli_value is not None:
        if cli_value <= 0:
            logger.warning(f"Invalid {name}={cli_value}, using default {default}")
            return default
        return cli_value

    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {name}={value}, using default {default}")
        return default
    return value


def get_workloads_path(args: argparse.Namespace) -> str | None:
    if args.workloads:
        return args.workloads
    return os.environ.get("FLEET_WORKLOADS")


def get_docker_bin(args: argparse.Namespace) -> str:
    if args.docker_bin:
        return args.docker_bin
    return os.environ.get("FLEET_DOCKER_BIN", "docker")


def get_stop_timeout(args: argparse.Namespace) -> int:
    return _positive_int("FLEET_STOP_TIMEOUT", args.stop_timeout, 10)


def get_max_concurrency(args: argparse.Namespace) -> int:
    return _positive_int("FLEET_MAX_CONCURRENCY", args.max_concurrency, 1)


def get_remove_on_exit(args: argparse.Namespace) -> bool:
    if args.remove_on_exit is not None:
        return args.remove_on_exit
    return os.environ.get("FLEET_REMOVE_ON_EXIT", "").strip().lower() in TRUE_VALUES


def get_api_bind(args: argparse.Namespace) -> tuple[str, int | None]:
    """
    Get the status API bind address.

    Returns:
        Tuple of (host, port); port is None when the API is disabled
    """
    host = args.api_host or os.environ.get("FLEET_API_HOST", "127.0.0.1")
    if args.api_port is not None:
        return host, args.api_port

    raw = os.environ.get("FLEET_API_PORT")
    if not raw:
        return host, None
    try:
        return host, int(raw)
    except ValueError:
        logger.warning(f"Invalid FLEET_API_PORT={raw}, status API disabled")
        return host, None


def log_batch_failures(error: BatchError) -> None:
    for spec, failure in error.failures:
        logger.error(f"Workload {spec.container_name} failed: {failure}")


async def serve_api(manager: LifecycleManager, host: str, port: int) -> None:
    """Serve the status API on the running event loop."""
    config = uvicorn.Config(create_app(manager), host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    # uvicorn captures SIGINT/SIGTERM while serving and re-raises them to
    # the previously installed handlers when it exits
    await server.serve()


async def run_controller(args: argparse.Namespace) -> None:
    """
    Start the fleet and keep it running until interrupted.

    Args:
        args: Parsed command-line arguments

    Raises:
        ValueError: If no workload file is configured or it cannot be parsed
    """
    workloads_path = get_workloads_path(args)
    if not workloads_path:
        raise ValueError("No workload file given (use --workloads or FLEET_WORKLOADS)")

    docker_bin = get_docker_bin(args)
    stop_timeout = get_stop_timeout(args)
    max_concurrency = get_max_concurrency(args)
    remove_on_exit = get_remove_on_exit(args)
    api_host, api_port = get_api_bind(args)

    logger.info("Starting Fleet Controller")
    logger.info(f"  Workloads: {workloads_path}")
    logger.info(f"  Docker executable: {docker_bin}")
    logger.info(f"  Max concurrency: {max_concurrency}")
    logger.info(f"  Remove on exit: {remove_on_exit}")
    logger.info(f"  Status API: {f'{api_host}:{api_port}' if api_port else '(disabled)'}")

    specs = load_workloads(workloads_path)
    engine = DockerCliEngine(docker_bin=docker_bin, stop_timeout=stop_timeout)
    manager = LifecycleManager(engine, max_concurrency=max_concurrency)

    # Set up signal handlers for graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler(sig: Any, _frame: Any) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    api_task: asyncio.Task | None = None
    try:
        try:
            await manager.initialize(specs, start_containers=not args.no_start)
        except BatchError as e:
            # Keep running the workloads that did start
            log_batch_failures(e)
        logger.info(f"{len(manager.list_running())} of {len(specs)} workloads running")

        if api_port:
            api_task = asyncio.create_task(serve_api(manager, api_host, api_port))

        await shutdown_event.wait()

    finally:
        if api_task:
            api_task.cancel()
            try:
                await api_task
            except asyncio.CancelledError:
                pass

        logger.info("Stopping workloads...")
        try:
            await manager.stop_all(remove_after_stop=remove_on_exit)
        except BatchError as e:
            log_batch_failures(e)
            raise
        logger.info("Fleet controller stopped cleanly")


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the controller.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_controller(args))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
