"""
HTTP status and control API for a running fleet.

Exposes the lifecycle manager's running/stopped records and lets operators
stop or restart individual workloads. The records reflect the manager's
last successful transitions, not a live poll of the engine.
"""

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request

from fleet_common.errors import LifecycleError
from fleet_common.models import WorkloadSpec
from fleet_controller.manager import LifecycleManager

logger = logging.getLogger(__name__)


def get_manager(request: Request) -> LifecycleManager:
    """
    Get the lifecycle manager the app was created with.

    Raises:
        RuntimeError: If the app has no manager attached
    """
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise RuntimeError("Lifecycle manager not initialized")
    return manager


def get_workload(
    container_name: str, manager: LifecycleManager = Depends(get_manager)
) -> WorkloadSpec:
    """
    Resolve a recorded workload from the path.

    Raises:
        HTTPException: 404 if the manager has no record of the container
    """
    spec = manager.get(container_name)
    if spec is None:
        raise HTTPException(status_code=404, detail="Workload not found")
    return spec


def create_app(manager: LifecycleManager) -> FastAPI:
    """
    Build the API application around a lifecycle manager.

    Args:
        manager: Manager whose records are served

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="Fleet Controller")
    app.state.manager = manager

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/workloads/running")
    async def list_running(
        manager: LifecycleManager = Depends(get_manager),
    ) -> list[dict[str, Any]]:
        """List workloads recorded as running."""
        return [spec.to_dict() for spec in manager.list_running()]

    @app.get("/workloads/stopped")
    async def list_stopped(
        manager: LifecycleManager = Depends(get_manager),
    ) -> list[dict[str, Any]]:
        """List workloads recorded as stopped."""
        return [spec.to_dict() for spec in manager.list_stopped()]

    @app.post("/workloads/{container_name}/stop")
    async def stop_workload(
        remove: bool = False,
        spec: WorkloadSpec = Depends(get_workload),
        manager: LifecycleManager = Depends(get_manager),
    ) -> dict[str, Any]:
        """
        Stop a recorded workload, optionally removing its container.

        Raises:
            HTTPException: 404 if unknown, 502 if the engine call fails
        """
        logger.info(f"API request to stop {spec.container_name} (remove={remove})")
        try:
            await manager.stop_one(spec, remove_after_stop=remove)
        except LifecycleError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"container_name": spec.container_name, "state": "stopped", "removed": remove}

    @app.post("/workloads/{container_name}/start")
    async def start_workload(
        spec: WorkloadSpec = Depends(get_workload),
        manager: LifecycleManager = Depends(get_manager),
    ) -> dict[str, Any]:
        """
        Converge a recorded workload back to running.

        Raises:
            HTTPException: 404 if unknown, 502 if the engine call fails
        """
        logger.info(f"API request to start {spec.container_name}")
        try:
            await manager.provision(spec)
        except LifecycleError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"container_name": spec.container_name, "state": "running"}

    return app
