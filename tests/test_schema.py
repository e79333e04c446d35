import pytest

from api_tester.errors import InputParseError, SchemaParseError
from api_tester.models import Endpoint, ErrorSchema, Schema, SchemaState
from api_tester.schema import (
    attach,
    infer_model,
    model_from_json_schema,
    response_model,
    synthesize,
)


def _endpoint(**kwargs):
    return Endpoint(url="https://api.example.com/api/users", **kwargs)


class TestSynthesize:
    CATALOG = {("GET", "/api/users", "response"): {"type": "object", "properties": {"id": {"type": "integer"}}}}

    def test_external_lookup(self):
        schema = synthesize("external", catalog=self.CATALOG, method="get", path="/api/users")
        assert schema.source == "external"
        assert schema.data == self.CATALOG[("GET", "/api/users", "response")]

    def test_external_absent(self):
        assert synthesize("external", catalog=self.CATALOG, method="GET", path="/api/pets") is None
        assert synthesize("external", catalog=self.CATALOG, method="GET", path="/api/users", role="error") is None
        assert synthesize("external") is None

    def test_inferred_keeps_sample_verbatim(self):
        sample = {"id": 1, "tags": ["a"]}
        schema = synthesize("inferred", sample)
        assert schema.source == "inferred"
        assert schema.data == sample

    def test_inferred_without_payload(self):
        assert synthesize("inferred", None) is None

    def test_manual_parses_json(self):
        schema = synthesize("manual", '{"id": 1}')
        assert schema.data == {"id": 1}

    def test_manual_blank(self):
        assert synthesize("manual", "   ") is None

    def test_manual_malformed(self):
        with pytest.raises(SchemaParseError) as exc:
            synthesize("manual", '{"id": ')
        assert isinstance(exc.value, InputParseError)
        assert exc.value.source == "manual"

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            synthesize("guessed", {})


class TestAttach:
    def test_active(self):
        endpoint = _endpoint()
        updated = attach(endpoint, SchemaState.active(Schema(source="manual", data={"id": 1})))
        assert updated.response_schema.is_active
        assert endpoint.response_schema.kind == "unset"

    def test_cleared_drops_error_schema(self):
        endpoint = _endpoint(error_schema=ErrorSchema(enabled=True))
        updated = attach(endpoint, SchemaState.cleared())
        assert updated.response_schema.is_cleared
        assert updated.error_schema is None
        assert endpoint.error_schema is not None

    def test_failed_parse_leaves_endpoint_untouched(self):
        endpoint = _endpoint(response_schema=SchemaState.active(Schema(source="manual", data={"a": 1})))
        with pytest.raises(SchemaParseError):
            attach(endpoint, SchemaState.active(synthesize("manual", "not json")))
        assert endpoint.response_schema.definition.data == {"a": 1}


class TestInferModel:
    def test_flat_object(self):
        shape = infer_model("UserResponse", {"id": 1, "name": "x", "score": 1.5, "active": True, "manager": None})
        assert shape.root == "UserResponse"
        assert not shape.many
        fields = {f.name: f for f in shape.classes[0].fields}
        assert fields["id"].type_hint == "int"
        assert fields["name"].type_hint == "str"
        assert fields["score"].type_hint == "float"
        assert fields["active"].type_hint == "bool"
        assert fields["manager"].type_hint == "Any"
        assert fields["manager"].optional

    def test_nested_classes_listed_first(self):
        shape = infer_model("UserResponse", {"address": {"city": "Oslo"}, "roles": [{"name": "admin"}], "tags": ["a"], "none": []})
        assert [c.name for c in shape.classes] == ["UserResponseAddress", "UserResponseRolesItem", "UserResponse"]
        root = {f.name: f.type_hint for f in shape.classes[-1].fields}
        assert root == {
            "address": "UserResponseAddress",
            "roles": "list[UserResponseRolesItem]",
            "tags": "list[str]",
            "none": "list[Any]",
        }

    def test_list_root(self):
        shape = infer_model("UsersResponse", [{"id": 1}, {"id": 2}])
        assert shape.many
        assert shape.classes[0].fields[0].name == "id"

    def test_non_object(self):
        assert infer_model("X", "text") is None
        assert infer_model("X", []) is None

    def test_attribute_aliases(self):
        shape = infer_model("X", {"firstName": "a", "class": "b", "2fa": True, "json": 1})
        attrs = {f.name: f.attribute for f in shape.classes[0].fields}
        assert attrs == {"firstName": "first_name", "class": "class_", "2fa": "field_2fa", "json": "json_"}
        assert shape.classes[0].fields[0].aliased


class TestModelFromJsonSchema:
    def test_properties_and_required(self):
        schema = {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "integer"},
                "owner": {"type": "object", "properties": {"email": {"type": "string"}}},
                "tags": {"type": "array", "items": {"type": "string"}},
                "meta": {"type": "object"},
            },
        }
        shape = model_from_json_schema("PetResponse", schema)
        assert [c.name for c in shape.classes] == ["PetResponseOwner", "PetResponse"]
        fields = {f.name: f for f in shape.classes[-1].fields}
        assert not fields["id"].optional
        assert fields["owner"].optional
        assert fields["owner"].type_hint == "PetResponseOwner"
        assert fields["tags"].type_hint == "list[str]"
        assert fields["meta"].type_hint == "dict[str, Any]"

    def test_array_root(self):
        shape = model_from_json_schema("PetsResponse", {"type": "array", "items": {"properties": {"id": {"type": "integer"}}}})
        assert shape.many

    def test_without_properties(self):
        assert model_from_json_schema("X", {"type": "string"}) is None


class TestResponseModel:
    def test_unset_uses_captured_response(self):
        shape = response_model(_endpoint(actual_response={"id": 1}), "UsersResponse")
        assert shape.classes[0].fields[0].name == "id"

    def test_unset_without_data(self):
        assert response_model(_endpoint(), "UsersResponse") is None

    def test_cleared_ignores_captured_response(self):
        endpoint = _endpoint(actual_response={"id": 1}, response_schema=SchemaState.cleared())
        assert response_model(endpoint, "UsersResponse") is None

    def test_active_external_uses_json_schema(self):
        schema = Schema(source="external", data={"type": "object", "properties": {"name": {"type": "string"}}})
        endpoint = _endpoint(actual_response={"id": 1}, response_schema=SchemaState.active(schema))
        shape = response_model(endpoint, "UsersResponse")
        assert [f.name for f in shape.classes[0].fields] == ["name"]

    def test_active_manual_uses_sample(self):
        schema = Schema(source="manual", data={"total": 3})
        endpoint = _endpoint(actual_response={"id": 1}, response_schema=SchemaState.active(schema))
        shape = response_model(endpoint, "UsersResponse")
        assert [f.name for f in shape.classes[0].fields] == ["total"]
