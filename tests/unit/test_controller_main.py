"""
Unit tests for the fleet controller entrypoint configuration.
"""

import json
import signal
from unittest.mock import patch

import pytest

from fleet_controller import __main__ as entrypoint

ENV_VARS = [
    "FLEET_WORKLOADS",
    "FLEET_DOCKER_BIN",
    "FLEET_STOP_TIMEOUT",
    "FLEET_MAX_CONCURRENCY",
    "FLEET_REMOVE_ON_EXIT",
    "FLEET_API_HOST",
    "FLEET_API_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfiguration:
    """Test suite for CLI/env/default resolution."""

    def test_defaults(self):
        args = entrypoint.parse_args([])

        assert entrypoint.get_workloads_path(args) is None
        assert entrypoint.get_docker_bin(args) == "docker"
        assert entrypoint.get_stop_timeout(args) == 10
        assert entrypoint.get_max_concurrency(args) == 1
        assert entrypoint.get_remove_on_exit(args) is False
        assert entrypoint.get_api_bind(args) == ("127.0.0.1", None)

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("FLEET_WORKLOADS", "/etc/fleet.json")
        monkeypatch.setenv("FLEET_DOCKER_BIN", "podman")
        monkeypatch.setenv("FLEET_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("FLEET_REMOVE_ON_EXIT", "yes")
        monkeypatch.setenv("FLEET_API_PORT", "8000")
        args = entrypoint.parse_args([])

        assert entrypoint.get_workloads_path(args) == "/etc/fleet.json"
        assert entrypoint.get_docker_bin(args) == "podman"
        assert entrypoint.get_max_concurrency(args) == 4
        assert entrypoint.get_remove_on_exit(args) is True
        assert entrypoint.get_api_bind(args) == ("127.0.0.1", 8000)

    def test_cli_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("FLEET_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("FLEET_WORKLOADS", "/etc/fleet.json")
        args = entrypoint.parse_args(
            ["--max-concurrency", "2", "--workloads", "local.json", "--api-port", "9000"]
        )

        assert entrypoint.get_max_concurrency(args) == 2
        assert entrypoint.get_workloads_path(args) == "local.json"
        assert entrypoint.get_api_bind(args) == ("127.0.0.1", 9000)

    @pytest.mark.parametrize("raw", ["zero", "0", "-3"])
    def test_invalid_numbers_fall_back(self, monkeypatch, raw):
        monkeypatch.setenv("FLEET_STOP_TIMEOUT", raw)
        args = entrypoint.parse_args([])

        assert entrypoint.get_stop_timeout(args) == 10

    def test_invalid_api_port_disables_api(self, monkeypatch):
        monkeypatch.setenv("FLEET_API_PORT", "http")

        assert entrypoint.get_api_bind(entrypoint.parse_args([])) == ("127.0.0.1", None)


class TestRunController:
    """Test suite for the controller run loop."""

    @pytest.mark.asyncio
    async def test_requires_workload_file(self):
        with pytest.raises(ValueError, match="No workload file"):
            await entrypoint.run_controller(entrypoint.parse_args([]))

    @pytest.mark.asyncio
    async def test_starts_and_stops_fleet(self, tmp_path, engine):
        path = tmp_path / "fleet.json"
        path.write_text(json.dumps([{"image": "nginx:latest"}]))
        args = entrypoint.parse_args(["--workloads", str(path), "--remove-on-exit"])

        async def trigger_shutdown():
            # Deliver SIGTERM once the fleet is up
            signal.raise_signal(signal.SIGTERM)

        engine.hooks[("start", "nginx-latest-container")] = trigger_shutdown

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)
        try:
            with patch.object(entrypoint, "DockerCliEngine", return_value=engine):
                await entrypoint.run_controller(args)
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

        operations = [call[0] for call in engine.calls]
        assert operations[-2:] == ["stop", "remove"]
        assert engine.containers == {}

    def test_main_returns_error_code(self):
        assert entrypoint.main([]) == 1
