"""Tests for reference resolution."""

import pytest

from meridian.domain.entities.resource_instance import InstanceStatus, ResourceInstance
from meridian.domain.entities.resource_spec import ResourceKind
from meridian.domain.errors import NotReadyError, UnknownAttributeError
from meridian.domain.services.attribute_resolver import resolve, resolve_inputs
from meridian.domain.value_objects.reference import Reference


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
        "apps.a": _ready("apps.a", "apps", "a", private_ip="10.0.1.1"),
        "apps.b": _ready("apps.b", "apps", "b", private_ip="10.0.1.2"),
    }


class TestResolve:
    def test_single_value(self, instances):
        assert resolve(Reference("db", "private_ip"), instances) == "10.0.0.5"

    def test_keyed_member(self, instances):
        assert resolve(Reference("apps", "private_ip", "b"), instances) == "10.0.1.2"

    def test_fan_out_returns_ordered_list(self, instances):
        assert resolve(Reference("apps", "private_ip"), instances) == ["10.0.1.1", "10.0.1.2"]

    def test_not_ready(self, instances):
        instances["db"] = ResourceInstance("db", ResourceKind.INSTANCE, InstanceStatus.CREATING)
        with pytest.raises(NotReadyError) as exc_info:
            resolve(Reference("db", "private_ip"), instances)
        assert exc_info.value.target_id == "db"

    def test_fan_out_needs_every_member(self, instances):
        instances["apps.b"] = ResourceInstance(
            "apps.b", ResourceKind.INSTANCE_SET, spec_id="apps", key="b"
        )
        with pytest.raises(NotReadyError):
            resolve(Reference("apps", "private_ip"), instances)

    def test_missing_target(self, instances):
        with pytest.raises(NotReadyError):
            resolve(Reference("cache", "private_ip"), instances)

    def test_unknown_attribute(self, instances):
        with pytest.raises(UnknownAttributeError) as exc_info:
            resolve(Reference("db", "dns_name"), instances)
        assert exc_info.value.attribute == "dns_name"

    def test_resolution_does_not_mutate(self, instances):
        before = dict(instances)
        resolve(Reference("apps", "private_ip"), instances)
        assert instances == before


class TestResolveInputs:
    def test_nested_structure(self, instances):
        inputs = {
            "env": {"DB_HOST": Reference("db", "private_ip")},
            "peers": [Reference("apps", "private_ip", "a"), "static"],
            "port": 8080,
        }
        assert resolve_inputs(inputs, instances) == {
            "env": {"DB_HOST": "10.0.0.5"},
            "peers": ["10.0.1.1", "static"],
            "port": 8080,
        }

    def test_literals_pass_through(self, instances):
        assert resolve_inputs({"a": (1, 2)}, instances) == {"a": (1, 2)}
