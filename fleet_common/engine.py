"""
Abstract container engine interface.

This module defines the contract that any container engine client must
follow, allowing the lifecycle manager to drive Docker, Podman, or a test
double without knowing which.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from .models import ContainerInfo, ContainerSummary, ImageInfo


class ContainerHandle(ABC):
    """
    Reference to a single container in the engine.

    Obtaining a handle does not contact the engine; each lifecycle call does.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def start(self) -> None:
        """
        Start the container.

        Raises:
            EngineUnavailable: If the engine cannot be reached
            EngineCommandError: If the engine rejects the call
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the container."""
        pass

    @abstractmethod
    async def remove(self) -> None:
        """Remove the container."""
        pass

    @abstractmethod
    async def inspect(self) -> ContainerInfo:
        """
        Fetch the container's inspection record.

        Returns:
            ContainerInfo with the engine-reported status
        """
        pass


class EngineClient(ABC):
    """
    Abstract base class for container engine operations.

    Implementations raise EngineUnavailable for transport failures and
    EngineCommandError when the engine rejects a call.
    """

    @abstractmethod
    async def list_images(self) -> list[ImageInfo]:
        """
        List images in the engine's local store.

        Returns:
            List of ImageInfo, each with its set of repo:tag references
        """
        pass

    @abstractmethod
    def pull_image(self, reference: str) -> AsyncIterator[str]:
        """
        Pull an image, yielding progress events as they arrive.

        The iterator raises when the pull fails, possibly after some
        progress events have been yielded.

        Args:
            reference: Image reference, e.g. "nginx:latest"
        """
        pass

    @abstractmethod
    async def list_containers(self, include_stopped: bool = True) -> list[ContainerSummary]:
        """
        List containers known to the engine.

        Args:
            include_stopped: If True, include containers that are not running

        Returns:
            List of ContainerSummary with "/"-prefixed names
        """
        pass

    @abstractmethod
    async def create_container(
        self, image: str, name: str, options: dict[str, Any]
    ) -> ContainerHandle:
        """
        Create (but do not start) a container.

        Args:
            image: Image reference to create from
            name: Container name
            options: Engine create options, forwarded as given

        Returns:
            Handle for the new container
        """
        pass

    @abstractmethod
    def get_container(self, name: str) -> ContainerHandle:
        """Get a handle for an existing container by name."""
        pass
