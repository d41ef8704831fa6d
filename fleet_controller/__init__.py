"""
Fleet Controller module.

This module contains the lifecycle manager that converges declared
workloads (desired state) with containers in the engine (actual state),
and the standalone entrypoint that keeps a fleet running until shutdown.
"""

from .manager import LifecycleManager, derive_container_name

__all__ = ["LifecycleManager", "derive_container_name"]
