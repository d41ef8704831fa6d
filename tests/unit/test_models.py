"""
Unit tests for domain models and the error taxonomy.
"""

import json

import pytest

from fleet_common.errors import BatchError, LifecycleError, StopFailed
from fleet_common.models import ContainerInfo, WorkloadSpec, load_workloads


class TestWorkloadSpec:
    """Test suite for WorkloadSpec."""

    def test_defaults(self):
        spec = WorkloadSpec(image="nginx:latest")

        assert spec.container_name is None
        assert spec.runtime_options == {}

    def test_runtime_options_are_not_shared(self):
        first = WorkloadSpec(image="a")
        second = WorkloadSpec(image="b")
        first.runtime_options["Env"] = ["X=1"]

        assert second.runtime_options == {}

    def test_to_dict(self):
        spec = WorkloadSpec(
            image="nginx:latest",
            container_name="web",
            runtime_options={"ExposedPorts": {"80/tcp": {}}},
        )

        assert spec.to_dict() == {
            "image": "nginx:latest",
            "container_name": "web",
            "runtime_options": {"ExposedPorts": {"80/tcp": {}}},
        }

    def test_from_dict_snake_case(self):
        spec = WorkloadSpec.from_dict(
            {"image": "redis:7", "container_name": "cache", "runtime_options": {"Env": ["A=1"]}}
        )

        assert spec == WorkloadSpec(
            image="redis:7", container_name="cache", runtime_options={"Env": ["A=1"]}
        )

    def test_from_dict_hand_written_keys(self):
        spec = WorkloadSpec.from_dict(
            {
                "name": "nginx:latest",
                "containerName": "web",
                "options": {"HostConfig": {"PortBindings": {"80/tcp": [{"HostPort": "8080"}]}}},
            }
        )

        assert spec.image == "nginx:latest"
        assert spec.container_name == "web"
        assert "HostConfig" in spec.runtime_options

    def test_from_dict_requires_image(self):
        with pytest.raises(ValueError):
            WorkloadSpec.from_dict({"containerName": "web"})

    @pytest.mark.parametrize("data", ["nginx:latest", ["nginx:latest"], None])
    def test_from_dict_rejects_non_object(self, data):
        with pytest.raises(ValueError, match="must be an object"):
            WorkloadSpec.from_dict(data)

    def test_from_dict_rejects_non_object_options(self):
        with pytest.raises(ValueError):
            WorkloadSpec.from_dict({"image": "nginx", "options": ["-p", "80"]})


class TestLoadWorkloads:
    """Test suite for workload file loading."""

    def test_list_file(self, tmp_path):
        path = tmp_path / "fleet.json"
        path.write_text(json.dumps([{"image": "nginx:latest"}, {"image": "redis:7"}]))

        specs = load_workloads(path)

        assert [spec.image for spec in specs] == ["nginx:latest", "redis:7"]

    def test_object_file(self, tmp_path):
        path = tmp_path / "fleet.json"
        path.write_text(json.dumps({"workloads": [{"image": "nginx:latest"}]}))

        assert load_workloads(str(path))[0].image == "nginx:latest"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "fleet.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="fleet.json"):
            load_workloads(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "fleet.json"
        path.write_text(json.dumps({"image": "nginx:latest"}))

        with pytest.raises(ValueError):
            load_workloads(path)


class TestContainerInfo:
    def test_to_dict_without_timestamps(self):
        info = ContainerInfo(container_id="c1", name="web", status="created")

        assert info.to_dict()["started_at"] is None
        assert info.to_dict()["status"] == "created"


class TestErrors:
    """Test suite for the error taxonomy."""

    def test_context_in_message(self):
        error = StopFailed("Failed to stop container", container_name="web", image="nginx:latest")

        assert isinstance(error, LifecycleError)
        assert isinstance(error, RuntimeError)
        assert str(error) == "Failed to stop container (container=web, image=nginx:latest)"

    def test_message_without_context(self):
        assert str(LifecycleError("boom")) == "boom"

    def test_batch_error_lists_failures(self):
        spec = WorkloadSpec(image="nginx:latest", container_name="web")
        failure = StopFailed("Failed to stop container", container_name="web")
        error = BatchError("Failed to stop 1 of 2 workloads", [(spec, failure)])

        assert error.failures == [(spec, failure)]
        assert "container=web" in str(error)
        assert str(error).startswith("Failed to stop 1 of 2 workloads: ")
