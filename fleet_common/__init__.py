"""
Fleet Common module.

This module contains shared domain models, the error taxonomy and the
abstract engine interface used across the fleet components (controller,
engine, server, admin CLI).

The common module has no dependencies on other fleet_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .engine import ContainerHandle, EngineClient
from .errors import (
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
from .models import (
    ContainerInfo,
    ContainerSummary,
    ImageInfo,
    WorkloadSpec,
    load_workloads,
)

__all__ = [
    "BatchError",
    "ContainerHandle",
    "ContainerInfo",
    "ContainerSummary",
    "CreateFailed",
    "EngineClient",
    "EngineCommandError",
    "EngineUnavailable",
    "ImageInfo",
    "LifecycleError",
    "PullFailed",
    "RemoveFailed",
    "StartFailed",
    "StopFailed",
    "WorkloadSpec",
    "load_workloads",
]
