"""Tests for output projection."""

import pytest

from meridian.domain.entities.resource_instance import InstanceStatus, ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind
from meridian.domain.errors import NotReadyError, UnknownAttributeError
from meridian.domain.services.output_projector import (
    OutputDefinition,
    OutputProjector,
    OutputShape,
)


def _ready(instance_id, spec_id=None, key=None, **attributes):
    return ResourceInstance(
        id=instance_id,
        kind=ResourceKind.INSTANCE_SET if key else ResourceKind.INSTANCE,
        status=InstanceStatus.READY,
        attributes=attributes,
        spec_id=spec_id,
        key=key,
    )


@pytest.fixture
def instances():
    return {
        "db": _ready("db", private_ip="10.0.0.5"),
        "apps.a": _ready("apps.a", "apps", "a", private_ip="10.0.1.1", public_ip="203.0.113.11"),
        "apps.b": _ready("apps.b", "apps", "b", private_ip="10.0.1.2", public_ip="203.0.113.12"),
        "kong": _ready("kong", private_ip="10.0.0.6", public_ip="203.0.113.10"),
    }


class TestOutputProjector:
    def test_default_output_names(self):
        assert OutputProjector().names == [
            "kong_public_ip",
            "apps_public_ips",
            "apps_private_ips",
            "database_private_ip",
        ]

    def test_projects_defaults(self, instances):
        outputs = OutputProjector().project(instances)
        assert outputs.to_dict() == {
            "kong_public_ip": "203.0.113.10",
            "apps_public_ips": {"a": "203.0.113.11", "b": "203.0.113.12"},
            "apps_private_ips": {"a": "10.0.1.1", "b": "10.0.1.2"},
            "database_private_ip": "10.0.0.5",
        }

    def test_not_ready_raises_on_read(self, instances):
        instances["kong"] = ResourceInstance("kong", ResourceKind.INSTANCE, InstanceStatus.FAILED)
        outputs = OutputProjector().project(instances)
        with pytest.raises(NotReadyError):
            outputs["kong_public_ip"]
        assert outputs["database_private_ip"] == "10.0.0.5"

    def test_available_skips_unready(self, instances):
        del instances["kong"]
        available = OutputProjector().project(instances).available()
        assert "kong_public_ip" not in available
        assert available["database_private_ip"] == "10.0.0.5"

    def test_available_skips_unknown_attribute(self, instances):
        projector = OutputProjector(
            [
                OutputDefinition("db_dns", "db", "dns_name"),
                OutputDefinition("database_private_ip", "db", "private_ip"),
            ]
        )
        outputs = projector.project(instances)
        assert outputs.available() == {"database_private_ip": "10.0.0.5"}
        with pytest.raises(UnknownAttributeError):
            outputs["db_dns"]

    def test_missing_set(self, instances):
        outputs = OutputProjector().project({"db": instances["db"]})
        with pytest.raises(NotReadyError):
            outputs["apps_private_ips"]

    def test_outputs_are_read_only(self, instances):
        outputs = OutputProjector().project(instances)
        with pytest.raises(TypeError):
            outputs["database_private_ip"] = "x"

    def test_snapshot_not_affected_by_later_changes(self, instances):
        outputs = OutputProjector().project(instances)
        instances["db"] = _ready("db", private_ip="10.9.9.9")
        assert outputs["database_private_ip"] == "10.0.0.5"

    def test_membership(self, instances):
        outputs = OutputProjector().project(instances)
        assert "kong_public_ip" in outputs
        assert "nope" not in outputs
        assert len(outputs) == 4

    def test_custom_definitions(self, instances):
        projector = OutputProjector(
            [
                OutputDefinition("first_app", "apps", "private_ip", key="a"),
                OutputDefinition("app_ids", "apps", "private_ip", OutputShape.PER_KEY),
            ]
        )
        outputs = projector.project(instances)
        assert outputs["first_app"] == "10.0.1.1"
        assert list(outputs["app_ids"]) == ["a", "b"]
