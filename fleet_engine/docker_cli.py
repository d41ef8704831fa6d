"""
Docker engine client built on the docker CLI.

This module implements the EngineClient interface by running docker
commands as asyncio subprocesses. Runtime options are accepted in the
Docker Engine API create-body shape and translated into CLI flags.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from fleet_common.engine import ContainerHandle, EngineClient
from fleet_common.errors import EngineCommandError, EngineUnavailable
from fleet_common.models import ContainerInfo, ContainerSummary, ImageInfo

logger = logging.getLogger(__name__)

# stderr fragments that mean the daemon itself is unreachable
UNAVAILABLE_MARKERS = (
    "Cannot connect to the Docker daemon",
    "error during connect",
    "Is the docker daemon running",
)

HANDLED_HOST_CONFIG_KEYS = {"PortBindings", "Binds", "NetworkMode", "RestartPolicy"}
HANDLED_KEYS = {
    "Env",
    "ExposedPorts",
    "Volumes",
    "Labels",
    "WorkingDir",
    "User",
    "Entrypoint",
    "Cmd",
    "HostConfig",
}


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def _parse_row(line: str, command: str) -> dict[str, Any]:
    """Parse one `--format {{json .}}` row; every row carries an ID."""
    try:
        row = json.loads(line)
    except json.JSONDecodeError as e:
        raise EngineCommandError(f"Failed to parse docker {command} output: {e}", [command]) from e
    if not isinstance(row, dict) or "ID" not in row:
        raise EngineCommandError(f"Unexpected docker {command} row: {line!r}", [command])
    return row


def build_create_args(options: dict[str, Any]) -> tuple[list[str], list[str]]:
    """
    Translate Docker Engine API create options into docker CLI arguments.

    Args:
        options: Create body, e.g. {"Env": [...], "HostConfig": {"PortBindings": {...}}}

    Returns:
        Tuple of (flags, command) where command goes after the image

    Unknown keys are logged and ignored.
    """
    flags: list[str] = []
    command: list[str] = []

    for key in options:
        if key not in HANDLED_KEYS:
            logger.warning(f"Ignoring unsupported create option: {key}")

    env = options.get("Env") or []
    if isinstance(env, dict):
        env = [f"{k}={v}" for k, v in env.items()]
    for item in env:
        flags += ["-e", item]

    for port in options.get("ExposedPorts") or {}:
        flags += ["--expose", port]

    for path in options.get("Volumes") or {}:
        flags += ["-v", path]

    for label, value in (options.get("Labels") or {}).items():
        flags += ["--label", f"{label}={value}"]

    if options.get("WorkingDir"):
        flags += ["-w", options["WorkingDir"]]

    if options.get("User"):
        flags += ["-u", options["User"]]

    entrypoint = options.get("Entrypoint")
    if isinstance(entrypoint, str):
        flags += ["--entrypoint", entrypoint]
    elif entrypoint:
        # The CLI only takes the executable; remaining words lead the command
        flags += ["--entrypoint", entrypoint[0]]
        command += list(entrypoint[1:])

    cmd = options.get("Cmd")
    if isinstance(cmd, str):
        command.append(cmd)
    elif cmd:
        command += list(cmd)

    host_config = options.get("HostConfig") or {}
    for key in host_config:
        if key not in HANDLED_HOST_CONFIG_KEYS:
            logger.warning(f"Ignoring unsupported HostConfig option: {key}")

    for container_port, bindings in (host_config.get("PortBindings") or {}).items():
        if not bindings:
            flags += ["-p", container_port]
            continue
        for binding in bindings:
            host_ip = binding.get("HostIp") or ""
            host_port = binding.get("HostPort") or ""
            if host_ip:
                flags += ["-p", f"{host_ip}:{host_port}:{container_port}"]
            elif host_port:
                flags += ["-p", f"{host_port}:{container_port}"]
            else:
                flags += ["-p", container_port]

    for bind in host_config.get("Binds") or []:
        flags += ["-v", bind]

    if host_config.get("NetworkMode"):
        flags += ["--network", host_config["NetworkMode"]]

    restart = host_config.get("RestartPolicy") or {}
    if restart.get("Name"):
        policy = restart["Name"]
        if policy == "on-failure" and restart.get("MaximumRetryCount"):
            policy = f"{policy}:{restart['MaximumRetryCount']}"
        flags += ["--restart", policy]

    return flags, command


class DockerCliContainer(ContainerHandle):
    """Handle for a container addressed by name through the docker CLI."""

    def __init__(self, engine: "DockerCliEngine", name: str):
        super().__init__(name)
        self.engine = engine

    async def start(self) -> None:
        await self.engine.run("start", self.name)

    async def stop(self) -> None:
        await self.engine.run("stop", "--time", str(self.engine.stop_timeout), self.name)

    async def remove(self) -> None:
        await self.engine.run("rm", self.name)

    async def inspect(self) -> ContainerInfo:
        """
        Get information about the container.

        Returns:
            ContainerInfo parsed from `docker inspect`

        Raises:
            EngineCommandError: If the container does not exist or the
                                output cannot be parsed
        """
        stdout = await self.engine.run("inspect", self.name)

        try:
            data = json.loads(stdout)
            if not data:
                raise EngineCommandError(
                    f"No inspection data for container {self.name}", ["inspect", self.name]
                )

            container = data[0]
            state = container["State"]

            return ContainerInfo(
                container_id=container["Id"],
                name=container.get("Name", self.name).lstrip("/"),
                status=state["Status"].lower(),
                exit_code=state.get("ExitCode"),
                started_at=_parse_timestamp(state.get("StartedAt")),
                finished_at=_parse_timestamp(state.get("FinishedAt")),
            )
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise EngineCommandError(
                f"Failed to parse container info: {e}", ["inspect", self.name]
            ) from e


class DockerCliEngine(EngineClient):
    """
    Container engine client that shells out to the docker CLI.

    Every call spawns one docker process; nothing is cached between calls.
    """

    def __init__(self, docker_bin: str = "docker", stop_timeout: int = 10):
        """
        Initialize the engine client.

        Args:
            docker_bin: Path or name of the docker executable
            stop_timeout: Seconds `docker stop` waits before killing a container
        """
        self.docker_bin = docker_bin
        self.stop_timeout = stop_timeout

    async def _spawn(self, args: tuple[str, ...], stderr: int) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.docker_bin,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=stderr,
            )
        except FileNotFoundError as e:
            raise EngineUnavailable(f"Docker executable not found: {self.docker_bin}") from e

    def _raise_for_failure(self, args: tuple[str, ...], error: str) -> None:
        error = error.strip()
        if any(marker in error for marker in UNAVAILABLE_MARKERS):
            raise EngineUnavailable(f"Docker daemon unavailable: {error}")
        raise EngineCommandError(
            f"docker {args[0]} failed: {error}", list(args), stderr=error
        )

    async def run(self, *args: str) -> str:
        """
        Run a docker command to completion.

        Args:
            *args: Arguments after the docker executable

        Returns:
            Decoded stdout

        Raises:
            EngineUnavailable: If docker is missing or the daemon is unreachable
            EngineCommandError: If the command exits non-zero
        """
        process = await self._spawn(args, asyncio.subprocess.PIPE)
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            self._raise_for_failure(args, stderr.decode(errors="replace"))

        return stdout.decode(errors="replace")

    async def list_images(self) -> list[ImageInfo]:
        stdout = await self.run("images", "--format", "{{json .}}")

        # docker prints one row per tag; fold rows sharing an image ID
        images: dict[str, ImageInfo] = {}
        for line in stdout.splitlines():
            if not line.strip():
                continue
            row = _parse_row(line, "images")
            image = images.setdefault(row["ID"], ImageInfo(id=row["ID"]))
            repository, tag = row.get("Repository"), row.get("Tag")
            if repository and tag and "<none>" not in (repository, tag):
                image.tags.add(f"{repository}:{tag}")

        return list(images.values())

    async def pull_image(self, reference: str) -> AsyncIterator[str]:
        """
        Pull an image and stream its progress output.

        Args:
            reference: Image reference to pull

        Yields:
            Progress lines as printed by `docker pull`

        Raises:
            EngineUnavailable: If the daemon is unreachable
            EngineCommandError: If the pull exits non-zero
        """
        args = ("pull", reference)
        process = await self._spawn(args, asyncio.subprocess.STDOUT)

        assert process.stdout is not None

        last_line = ""
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                last_line = line.decode(errors="replace").rstrip()
                yield last_line
            await process.wait()
        finally:
            # Clean up process if the consumer stopped early
            if process.returncode is None:
                process.terminate()
                await process.wait()

        if process.returncode != 0:
            self._raise_for_failure(args, last_line)

    async def list_containers(self, include_stopped: bool = True) -> list[ContainerSummary]:
        args = ["ps", "--no-trunc", "--format", "{{json .}}"]
        if include_stopped:
            args.insert(1, "-a")
        stdout = await self.run(*args)

        containers = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            row = _parse_row(line, "ps")
            # The CLI prints bare names; the engine API prefixes them with "/"
            names = {f"/{name}" for name in row.get("Names", "").split(",") if name}
            containers.append(
                ContainerSummary(
                    id=row["ID"],
                    names=names,
                    image=row.get("Image"),
                    state=row.get("State"),
                )
            )

        return containers

    async def create_container(
        self, image: str, name: str, options: dict[str, Any]
    ) -> DockerCliContainer:
        flags, command = build_create_args(options)
        await self.run("create", "--name", name, *flags, image, *command)
        return DockerCliContainer(self, name)

    def get_container(self, name: str) -> DockerCliContainer:
        return DockerCliContainer(self, name)
