"""Tests for ResourceSpec, Reference and the ResourceModel registry."""

import pytest

from meridian.domain.entities.resource_spec import ResourceKind, ResourceSpec
from meridian.domain.errors import SpecError
from meridian.domain.services.resource_model import ResourceModel
from meridian.domain.value_objects.reference import Reference, iter_references


class TestResourceKind:
    def test_parse_wire_name(self):
        assert ResourceKind.parse("InstanceSet") is ResourceKind.INSTANCE_SET

    def test_parse_enum_name(self):
        assert ResourceKind.parse("SECURITY_GROUP") is ResourceKind.SECURITY_GROUP

    def test_parse_unknown(self):
        with pytest.raises(SpecError, match="Unknown resource kind"):
            ResourceKind.parse("LoadBalancer")


class TestResourceSpec:
    def test_instance_expands_to_itself(self):
        spec = ResourceSpec("db", ResourceKind.INSTANCE)
        assert spec.expand() == [("db", None)]

    def test_instance_set_expands_in_declared_order(self):
        spec = ResourceSpec("apps", ResourceKind.INSTANCE_SET, count_key=("c", "a", "b"))
        assert spec.expand() == [("apps.c", "c"), ("apps.a", "a"), ("apps.b", "b")]

    def test_duplicate_keys_collapsed(self):
        spec = ResourceSpec("apps", ResourceKind.INSTANCE_SET, count_key=["a", "b", "a"])
        assert spec.count_key == ("a", "b")

    def test_instance_set_requires_count_key(self):
        with pytest.raises(SpecError, match="non-empty count_key"):
            ResourceSpec("apps", ResourceKind.INSTANCE_SET)

    def test_instance_set_rejects_empty_count_key(self):
        with pytest.raises(SpecError, match="non-empty count_key"):
            ResourceSpec("apps", ResourceKind.INSTANCE_SET, count_key=())

    def test_count_key_only_on_sets(self):
        with pytest.raises(SpecError, match="only allowed on InstanceSet"):
            ResourceSpec("db", ResourceKind.INSTANCE, count_key=("a",))

    def test_string_count_key_rejected(self):
        with pytest.raises(SpecError):
            ResourceSpec("apps", ResourceKind.INSTANCE_SET, count_key="abc")

    def test_unknown_kind_rejected(self):
        with pytest.raises(SpecError, match="Unknown resource kind"):
            ResourceSpec("db", "Database")

    def test_invalid_id_rejected(self):
        with pytest.raises(SpecError, match="Invalid resource id"):
            ResourceSpec("db.primary", ResourceKind.INSTANCE)

    def test_references_found_at_any_depth(self):
        spec = ResourceSpec(
            "kong",
            ResourceKind.INSTANCE,
            {
                "env": {"DB": Reference("db", "private_ip")},
                "peers": [Reference("apps", "private_ip", key="a"), "literal"],
            },
        )
        assert [str(r) for r in spec.references()] == ["db.private_ip", "apps[a].private_ip"]


class TestReference:
    def test_parse_plain(self):
        assert Reference.parse("db.private_ip") == Reference("db", "private_ip")

    def test_parse_keyed(self):
        assert Reference.parse("apps[b].public_ip") == Reference("apps", "public_ip", "b")

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            Reference.parse("private_ip")

    def test_empty_attribute_rejected(self):
        with pytest.raises(ValueError):
            Reference("db", "")

    def test_iter_references_ignores_literals(self):
        assert list(iter_references({"a": 1, "b": ["x", {"c": None}]})) == []


class TestResourceModel:
    def test_declare_keeps_order(self):
        model = ResourceModel()
        model.declare(ResourceSpec("b", ResourceKind.INSTANCE))
        model.declare(ResourceSpec("a", ResourceKind.INSTANCE))
        assert [s.id for s in model] == ["b", "a"]
        assert len(model) == 2
        assert "a" in model

    def test_duplicate_id(self):
        model = ResourceModel([ResourceSpec("db", ResourceKind.INSTANCE)])
        with pytest.raises(SpecError, match="Duplicate resource id"):
            model.declare(ResourceSpec("db", ResourceKind.SECURITY_GROUP))

    def test_forward_reference_allowed(self):
        model = ResourceModel()
        model.declare(ResourceSpec("app", ResourceKind.INSTANCE, {"db": Reference("db", "private_ip")}))
        model.declare(ResourceSpec("db", ResourceKind.INSTANCE))
        model.validate()

    def test_undeclared_target(self):
        model = ResourceModel(
            [ResourceSpec("app", ResourceKind.INSTANCE, {"db": Reference("db", "private_ip")})]
        )
        with pytest.raises(SpecError, match="undeclared resource 'db'"):
            model.validate()

    def test_key_on_non_set(self):
        model = ResourceModel(
            [
                ResourceSpec("db", ResourceKind.INSTANCE),
                ResourceSpec("app", ResourceKind.INSTANCE, {"db": Reference("db", "private_ip", "a")}),
            ]
        )
        with pytest.raises(SpecError, match="not an InstanceSet"):
            model.validate()

    def test_unknown_key(self):
        model = ResourceModel(
            [
                ResourceSpec("apps", ResourceKind.INSTANCE_SET, count_key=("a",)),
                ResourceSpec("lb", ResourceKind.INSTANCE, {"x": Reference("apps", "private_ip", "z")}),
            ]
        )
        with pytest.raises(SpecError, match="unknown key 'z'"):
            model.validate()

    def test_get_unknown(self):
        with pytest.raises(SpecError):
            ResourceModel().get("missing")
