"""
Lifecycle manager for container workloads.

This module implements the reconciliation logic that drives a container
engine toward a set of declared workloads: pull missing images, create or
restart containers, and stop or remove them on teardown. It keeps an
in-memory record of which workloads it last started or stopped.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager

from fleet_common.engine import EngineClient
from fleet_common.errors import (
    BatchError,
    CreateFailed,
    EngineCommandError,
    EngineUnavailable,
    LifecycleError,
    PullFailed,
    RemoveFailed,
    StartFailed,
    StopFailed,
)
from fleet_common.models import WorkloadSpec

logger = logging.getLogger(__name__)


def derive_container_name(image: str) -> str:
    """
    Derive a container name from an image reference.

    Args:
        image: Image reference, e.g. "nginx:latest"

    Returns:
        "<image>-container" with every ":" replaced by "-",
        e.g. "nginx-latest-container"
    """
    return f"{image}-container".replace(":", "-")


class LifecycleManager:
    """
    Converges container workloads and tracks their running/stopped state.

    The running and stopped records are a cache of the last successful
    transition made through this manager, not a live view of the engine.
    A container name is recorded in at most one of them.
    """

    def __init__(self, engine: EngineClient, max_concurrency: int = 1):
        """
        Initialize the lifecycle manager.

        Args:
            engine: Container engine client
            max_concurrency: Number of specs a batch operation processes at
                             once. 1 processes them one at a time in order.
        """
        self.engine = engine
        self.max_concurrency = max(1, int(max_concurrency))

        # container_name -> spec, in insertion order
        self._running: dict[str, WorkloadSpec] = {}
        self._stopped: dict[str, WorkloadSpec] = {}

        # Serializes convergence/teardown per container name
        self._name_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @contextmanager
    def _engine_errors(
        self, error_cls: type[LifecycleError], action: str, spec: WorkloadSpec
    ) -> Iterator[None]:
        """Translate engine failures into lifecycle errors carrying spec context."""
        try:
            yield
        except EngineUnavailable as e:
            logger.error(f"Engine unavailable while trying to {action} {spec.container_name}: {e}")
            raise EngineUnavailable(
                f"Engine unavailable while trying to {action}: {e.message}",
                container_name=spec.container_name,
                image=spec.image,
            ) from e
        except EngineCommandError as e:
            logger.error(f"Failed to {action} {spec.container_name}: {e}")
            raise error_cls(
                f"Failed to {action}: {e}",
                container_name=spec.container_name,
                image=spec.image,
            ) from e

    def _assign_name(self, spec: WorkloadSpec) -> WorkloadSpec:
        if not spec.container_name:
            spec.container_name = derive_container_name(spec.image)
        return spec

    def _record_running(self, spec: WorkloadSpec) -> None:
        # No await between the two updates, so no other task can observe
        # the name in both records or in neither.
        self._running[spec.container_name] = spec
        self._stopped.pop(spec.container_name, None)

    def _record_stopped(self, spec: WorkloadSpec) -> None:
        self._stopped[spec.container_name] = spec
        self._running.pop(spec.container_name, None)

    async def ensure_image(self, spec: WorkloadSpec) -> None:
        """
        Make sure the spec's image is present in the engine.

        Args:
            spec: Workload whose image should be present

        Raises:
            EngineUnavailable: If the engine cannot be reached
            PullFailed: If the pull fails or its progress stream breaks
        """
        self._assign_name(spec)

        with self._engine_errors(PullFailed, "list images for", spec):
            images = await self.engine.list_images()

        if any(spec.image in image.tags for image in images):
            logger.info(f"Image {spec.image} already exists")
            return

        logger.info(f"Pulling image {spec.image}")
        with self._engine_errors(PullFailed, "pull image for", spec):
            async for event in self.engine.pull_image(spec.image):
                logger.debug(f"Pull {spec.image}: {event}")
        logger.info(f"Image {spec.image} pulled")

    async def ensure_running(self, spec: WorkloadSpec) -> None:
        """
        Converge a workload to a running container.

        Creates and starts the container if it does not exist, starts it if
        it exists but is not running, and does nothing if it is already
        running. In every successful case the spec is recorded as running.

        Args:
            spec: Workload to converge

        Raises:
            EngineUnavailable: If the engine cannot be reached
            CreateFailed: If the engine rejects container creation
            StartFailed: If the engine rejects the start or inspection
        """
        self._assign_name(spec)
        name = spec.container_name

        async with self._name_locks[name]:
            with self._engine_errors(StartFailed, "list containers for", spec):
                containers = await self.engine.list_containers(include_stopped=True)
            exists = any(f"/{name}" in container.names for container in containers)

            if not exists:
                with self._engine_errors(CreateFailed, "create container", spec):
                    container = await self.engine.create_container(
                        spec.image, name, spec.runtime_options
                    )
                logger.info(f"Container {name} created from {spec.image}")
                with self._engine_errors(StartFailed, "start container", spec):
                    await container.start()
                logger.info(f"Container {name} started")
            else:
                container = self.engine.get_container(name)
                with self._engine_errors(StartFailed, "inspect container", spec):
                    info = await container.inspect()

                if info.status != "running":
                    with self._engine_errors(StartFailed, "start container", spec):
                        await container.start()
                    logger.info(f"Container {name} started")
                else:
                    logger.info(f"Container {name} is already running")

            self._record_running(spec)

    async def provision(self, spec: WorkloadSpec, start_container: bool = True) -> None:
        """
        Pull the spec's image if needed and optionally converge it to running.

        Args:
            spec: Workload to provision
            start_container: If False, stop after making the image present
        """
        await self.ensure_image(spec)
        if start_container:
            await self.ensure_running(spec)

    async def _run_batch(
        self,
        specs: list[WorkloadSpec],
        operation: Callable[[WorkloadSpec], Awaitable[None]],
        description: str,
    ) -> None:
        """
        Apply an operation to every spec, collecting lifecycle failures.

        All specs are attempted. Raises BatchError afterwards if any failed.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def attempt(spec: WorkloadSpec) -> LifecycleError | None:
            async with semaphore:
                try:
                    await operation(spec)
                except LifecycleError as e:
                    logger.error(f"Failed to {description} {spec.container_name}: {e}")
                    return e
            return None

        if self.max_concurrency == 1:
            results = [await attempt(spec) for spec in specs]
        else:
            tasks = [asyncio.ensure_future(attempt(spec)) for spec in specs]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                # Nothing may keep converging after the caller sees the error
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        failures = [(spec, error) for spec, error in zip(specs, results) if error is not None]
        if failures:
            raise BatchError(
                f"Failed to {description} {len(failures)} of {len(specs)} workloads",
                failures,
            )

    async def initialize(
        self, specs: list[WorkloadSpec], start_containers: bool = True
    ) -> list[WorkloadSpec]:
        """
        Name and converge a batch of workloads.

        Args:
            specs: Workloads to manage; each gets its container name attached
            start_containers: If False, only names are attached and the
                              engine is not contacted

        Returns:
            The same specs, named

        Raises:
            BatchError: After the whole batch was attempted, if any spec failed
        """
        specs = [self._assign_name(spec) for spec in specs]
        if not start_containers:
            return specs

        await self._run_batch(specs, self.provision, "initialize")
        return specs

    async def stop_one(self, spec: WorkloadSpec, remove_after_stop: bool = False) -> None:
        """
        Stop a workload's container and optionally remove it.

        The spec is recorded as stopped as soon as the stop succeeds, and
        stays recorded as stopped if the removal then fails.

        Args:
            spec: Workload to stop
            remove_after_stop: If True, remove the container after stopping it

        Raises:
            EngineUnavailable: If the engine cannot be reached
            StopFailed: If the engine rejects the stop
            RemoveFailed: If the engine rejects the removal
        """
        self._assign_name(spec)
        name = spec.container_name

        async with self._name_locks[name]:
            container = self.engine.get_container(name)
            with self._engine_errors(StopFailed, "stop container", spec):
                await container.stop()
            logger.info(f"Container {name} stopped")
            self._record_stopped(spec)

            if remove_after_stop:
                with self._engine_errors(RemoveFailed, "remove container", spec):
                    await container.remove()
                logger.info(f"Container {name} removed")

    async def stop_all(self, remove_after_stop: bool = False) -> None:
        """
        Stop every workload currently recorded as running.

        Works on a snapshot taken at call time; workloads recorded as running
        while this call is in progress are not stopped by it.

        Raises:
            BatchError: After every workload was attempted, if any failed
        """
        snapshot = list(self._running.values())

        async def stop(spec: WorkloadSpec) -> None:
            await self.stop_one(spec, remove_after_stop)

        await self._run_batch(snapshot, stop, "stop")

    def list_running(self) -> list[WorkloadSpec]:
        """Return a copy of the workloads recorded as running."""
        return list(self._running.values())

    def list_stopped(self) -> list[WorkloadSpec]:
        """Return a copy of the workloads recorded as stopped."""
        return list(self._stopped.values())

    def get(self, container_name: str) -> WorkloadSpec | None:
        """Look up a recorded workload by container name."""
        return self._running.get(container_name) or self._stopped.get(container_name)
