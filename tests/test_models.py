import pytest
from pydantic import ValidationError

from api_tester.models import (
    Endpoint,
    ErrorSchema,
    ExecutionResult,
    GeneratedCode,
    GeneratedFile,
    Schema,
    SchemaState,
    ValidationRule,
)


class TestValidationRule:
    def test_status_field_is_implicit(self):
        rule = ValidationRule(type="status", expected_value="200", field="whatever")
        assert rule.field == "status"

    def test_value_requires_field(self):
        with pytest.raises(ValidationError):
            ValidationRule(type="value", expected_value="x")

    def test_value_requires_expected(self):
        with pytest.raises(ValidationError):
            ValidationRule(type="value", field="a")

    def test_existence_drops_expected(self):
        rule = ValidationRule(type="existence", field="a", expected_value="x")
        assert rule.expected_value is None

    def test_camel_case_input(self):
        rule = ValidationRule.model_validate({"type": "status", "expectedValue": 201})
        assert rule.expected_value == "201"
        assert rule.model_dump(by_alias=True)["expectedValue"] == "201"

    def test_bool_expected_value(self):
        rule = ValidationRule(type="value", field="ok", expected_value=True)
        assert rule.expected_value == "true"

    def test_generated_ids(self):
        a = ValidationRule(type="status", expected_value="200")
        b = ValidationRule(type="status", expected_value="200")
        assert a.id != b.id


class TestEndpoint:
    def test_method_upper_cased(self):
        assert Endpoint(method="patch", url="/x").method == "PATCH"

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            Endpoint(method="FETCH", url="/x")

    def test_path(self):
        assert Endpoint(url="https://api.example.com/api/users?page=2").path == "/api/users"
        assert Endpoint(url="https://api.example.com").path == "/"
        assert Endpoint(url="{{baseUrl}}/api/users?x=1").path == "/api/users"
        assert Endpoint(url="api/users").path == "/api/users"

    def test_body_mapping_serialized(self):
        endpoint = Endpoint(method="POST", url="/x", body={"a": 1})
        assert endpoint.body == '{\n  "a": 1\n}'

    def test_headers_stringified(self):
        assert Endpoint(url="/x", headers={"X-Retry": 3}).headers == {"X-Retry": "3"}

    def test_accepts_body(self):
        assert Endpoint(method="PUT", url="/x").accepts_body
        assert not Endpoint(method="DELETE", url="/x").accepts_body

    def test_customizable_fields_copy_on_write(self):
        endpoint = Endpoint(url="/x", customizable_fields=["a"])
        updated = endpoint.with_customizable_fields({"a", "b"})
        assert endpoint.customizable_fields == frozenset({"a"})
        assert updated.customizable_fields == frozenset({"a", "b"})
        assert updated.id == endpoint.id

    def test_customizable_fields_dumped_sorted(self):
        endpoint = Endpoint(url="/x", customizable_fields={"b", "a"})
        assert endpoint.model_dump(by_alias=True)["customizableFields"] == ["a", "b"]


class TestSchemaState:
    def test_default_unset(self):
        state = Endpoint(url="/x").response_schema
        assert state.kind == "unset"
        assert not state.is_active and not state.is_cleared

    def test_active_requires_definition(self):
        with pytest.raises(ValidationError):
            SchemaState(kind="active")

    def test_cleared_cannot_carry_definition(self):
        with pytest.raises(ValidationError):
            SchemaState(kind="cleared", definition=Schema(source="manual", data={}))

    def test_constructors(self):
        assert SchemaState.active(Schema(source="inferred", data=1)).is_active
        assert SchemaState.cleared().is_cleared
        assert SchemaState.unset().kind == "unset"


class TestErrorSchema:
    def test_int_status(self):
        assert ErrorSchema.model_validate({"enabled": True, "statusCode": 404}).status_code == "404"


class TestExecutionResult:
    def test_frozen(self):
        result = ExecutionResult(endpoint=Endpoint(url="/x"), status="pending")
        with pytest.raises(ValidationError):
            result.status = "success"
        assert not result.succeeded


class TestGeneratedCode:
    def test_all_files_order(self):
        code = GeneratedCode(
            feature_files=[GeneratedFile(name="a.feature", content="")],
            data_model_stubs=[GeneratedFile(name="m.py", content="")],
            service_classes=[GeneratedFile(name="s.py", content="")],
        )
        assert [f.name for f in code.all_files()] == ["a.feature", "s.py", "m.py"]
