"""
Shared test doubles for lifecycle tests.

FakeEngine keeps images and containers in memory and records every call,
so tests can assert on the exact sequence of engine operations.
"""

import asyncio
from typing import Any

import pytest

from fleet_common.engine import ContainerHandle, EngineClient
from fleet_common.errors import EngineCommandError
from fleet_common.models import ContainerInfo, ContainerSummary, ImageInfo
from fleet_controller.manager import LifecycleManager


class FakeContainer(ContainerHandle):
    def __init__(self, engine: "FakeEngine", name: str):
        super().__init__(name)
        self.engine = engine

    def _container(self) -> dict[str, Any]:
        container = self.engine.containers.get(self.name)
        if container is None:
            raise EngineCommandError(f"No such container: {self.name}", [self.name])
        return container

    async def start(self) -> None:
        await self.engine.call("start", self.name)
        self._container()["status"] = "running"

    async def stop(self) -> None:
        await self.engine.call("stop", self.name)
        self._container()["status"] = "exited"

    async def remove(self) -> None:
        await self.engine.call("remove", self.name)
        self._container()
        del self.engine.containers[self.name]

    async def inspect(self) -> ContainerInfo:
        await self.engine.call("inspect", self.name)
        container = self._container()
        return ContainerInfo(
            container_id=container["id"], name=self.name, status=container["status"]
        )


class FakeEngine(EngineClient):
    """
    In-memory engine.

    failures maps an operation ("pull", "create", "start", ...) or an
    (operation, name) pair to the exception that call should raise.
    hooks maps the same keys to coroutine functions run before the call.
    """

    def __init__(self):
        self.images: dict[str, set[str]] = {}
        self.containers: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.failures: dict[Any, Exception] = {}
        self.hooks: dict[Any, Any] = {}
        self.pull_events = ["Pulling fs layer", "Download complete", "Status: Downloaded"]
        self.pull_fail_after: int | None = None
        self.consumed_events = 0
        self.created_options: dict[str, dict[str, Any]] = {}

    async def call(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, *args))
        # Yield to the loop so concurrent tasks interleave like real I/O
        await asyncio.sleep(0)
        for key in ((operation, *args), operation):
            if key in self.hooks:
                await self.hooks[key]()
            if key in self.failures:
                raise self.failures[key]

    def add_image(self, reference: str) -> None:
        self.images[f"sha256:{len(self.images)}"] = {reference}

    def add_container(self, name: str, image: str, status: str = "running") -> None:
        self.containers[name] = {"id": f"id-{name}", "image": image, "status": status}

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    async def list_images(self) -> list[ImageInfo]:
        await self.call("list_images")
        return [ImageInfo(id=image_id, tags=set(tags)) for image_id, tags in self.images.items()]

    async def pull_image(self, reference: str):
        await self.call("pull", reference)
        for index, event in enumerate(self.pull_events):
            if self.pull_fail_after is not None and index == self.pull_fail_after:
                raise EngineCommandError("stream interrupted", ["pull", reference])
            self.consumed_events += 1
            yield event
        self.add_image(reference)

    async def list_containers(self, include_stopped: bool = True) -> list[ContainerSummary]:
        await self.call("list_containers", include_stopped)
        return [
            ContainerSummary(id=c["id"], names={f"/{name}"}, image=c["image"], state=c["status"])
            for name, c in self.containers.items()
            if include_stopped or c["status"] == "running"
        ]

    async def create_container(
        self, image: str, name: str, options: dict[str, Any]
    ) -> FakeContainer:
        await self.call("create", image, name)
        self.created_options[name] = options
        self.add_container(name, image, status="created")
        return FakeContainer(self, name)

    def get_container(self, name: str) -> FakeContainer:
        return FakeContainer(self, name)


@pytest.fixture
def engine():
    """Create an empty in-memory engine."""
    return FakeEngine()


@pytest.fixture
def manager(engine):
    """Create a LifecycleManager over the in-memory engine."""
    return LifecycleManager(engine)
