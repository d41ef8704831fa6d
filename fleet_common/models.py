"""
Data models for container workloads.

These models represent the domain objects shared by the lifecycle manager,
the engine clients and the outer surfaces (API, CLI), independent of the
container engine being driven.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal


@dataclass
class WorkloadSpec:
    """
    Desired state of a single container workload.

    The container name is attached by the lifecycle manager when it is not
    supplied. Runtime options are forwarded to the engine untouched.
    """

    image: str  # Repository + tag, e.g. "nginx:latest"
    container_name: str | None = None
    runtime_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert spec to dictionary format (for JSON files and API responses)."""
        return {
            "image": self.image,
            "container_name": self.container_name,
            "runtime_options": self.runtime_options,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkloadSpec":
        """
        Create a spec from dictionary format.

        Accepts both the snake_case keys written by to_dict() and the
        name/containerName/options keys of hand-written workload files.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Workload must be an object, got {data!r}")

        image = data.get("image", data.get("name"))
        if not isinstance(image, str) or not image:
            raise ValueError(f"Workload is missing an image reference: {data!r}")

        container_name = data.get("container_name", data.get("containerName"))
        options = data.get("runtime_options", data.get("options")) or {}
        if not isinstance(options, dict):
            raise ValueError(f"Runtime options for {image} must be an object")

        return cls(image=image, container_name=container_name, runtime_options=options)


@dataclass
class ImageInfo:
    """An image known to the engine's local store."""

    id: str
    tags: set[str] = field(default_factory=set)


@dataclass
class ContainerSummary:
    """
    A container as returned by an engine listing.

    Names follow the engine API convention of a leading "/".
    """

    id: str
    names: set[str] = field(default_factory=set)
    image: str | None = None
    state: str | None = None


@dataclass
class ContainerInfo:
    """
    Inspection record of a Docker container.

    Represents the current state of a container from the engine's perspective.
    """

    container_id: str
    name: str
    status: Literal[
        "created", "running", "exited", "paused", "restarting", "removing", "dead"
    ]
    exit_code: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert inspection record to dictionary format (for CLI output)."""
        return {
            "container_id": self.container_id,
            "name": self.name,
            "status": self.status,
            "exit_code": self.exit_code,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def load_workloads(path: str | Path) -> list[WorkloadSpec]:
    """
    Load workload specs from a JSON file.

    Args:
        path: File holding either a list of workload objects or an object
              with a "workloads" list

    Returns:
        Specs in file order

    Raises:
        ValueError: If the file is not valid JSON or has the wrong shape
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid workload file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("workloads")

    if not isinstance(data, list):
        raise ValueError(f"Invalid workload file {path}: expected a list of workloads")

    return [WorkloadSpec.from_dict(item) for item in data]
