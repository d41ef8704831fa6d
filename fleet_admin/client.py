import requests


def _get_json(url: str) -> list[dict]:
    try:
        response = requests.get(url, timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error querying fleet controller: {e}") from e


def list_running(server_url: str = "http://localhost:8000") -> list[dict]:
    """
    List workloads the controller has recorded as running.

    Args:
        server_url: Base URL of the fleet controller's status API

    Returns:
        List of workload dictionaries with image, container_name and runtime_options

    Raises:
        RuntimeError: If the request fails due to network or server error
    """
    return _get_json(f"{server_url.rstrip('/')}/workloads/running")


def list_stopped(server_url: str = "http://localhost:8000") -> list[dict]:
    """List workloads the controller has recorded as stopped."""
    return _get_json(f"{server_url.rstrip('/')}/workloads/stopped")
