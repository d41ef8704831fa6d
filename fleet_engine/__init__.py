"""
Fleet Engine module.

This module contains the concrete container engine client. Currently it
drives the docker CLI, but other engines can be added by implementing
fleet_common.engine.EngineClient.
"""

from .docker_cli import DockerCliContainer, DockerCliEngine, build_create_args

__all__ = ["DockerCliEngine", "DockerCliContainer", "build_create_args"]
