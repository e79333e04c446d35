"""Unified data models for endpoints, validation rules, executions and generated code.

All importers (native collection, Postman, OpenAPI) convert their input into
these models for downstream processing. Attribute names are snake_case; the
camelCase names used by collection files and the relay are accepted as
aliases and used when dumping with ``by_alias=True``.
"""

import json
import re
import uuid
from typing import Any, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH")

STATUS_CONDITIONS = ("equals", "not_equals")
VALUE_CONDITIONS = ("equals", "not_equals", "contains", "starts_with", "ends_with")
EXISTENCE_CONDITIONS = ("is_empty", "is_not_empty", "is_null", "is_not_null")

_POSTMAN_HOST = re.compile(r"^\{\{[^}]+\}\}")


def new_id() -> str:
    return uuid.uuid4().hex[:9]


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON/YAML documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationRule(WireModel):
    """A single declarative assertion against a captured response."""

    id: str = Field(default_factory=new_id)
    type: Literal["status", "value", "existence"]
    field: str | None = None  # dotted path into response data, "status" for status rules
    expected_value: str | None = None
    condition: str | None = None
    result: Literal["pass", "fail"] | None = None
    message: str | None = None

    @field_validator("expected_value", mode="before")
    @classmethod
    def _stringify_expected(cls, value: Any) -> Any:
        # YAML turns `expectedValue: 200` into an int and `true` into a bool
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_shape(self) -> "ValidationRule":
        if self.type == "status":
            self.field = "status"
        elif not self.field:
            raise ValueError(f"{self.type} rule requires a field")
        if self.type in ("status", "value") and self.expected_value is None:
            raise ValueError(f"{self.type} rule requires an expected value")
        if self.type == "existence":
            self.expected_value = None
        return self


class ErrorSchema(WireModel):
    """Expected shape of an error response, per endpoint or collection-wide."""

    enabled: bool = False
    status_code: str = "400"
    error_structure: str = ""  # JSON text of a sample error body

    @field_validator("status_code", mode="before")
    @classmethod
    def _stringify_status(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class Schema(WireModel):
    """A response shape: an external definition, an inferred sample or manual JSON."""

    source: Literal["external", "inferred", "manual"]
    data: Any = None


class SchemaState(WireModel):
    """Schema attachment of an endpoint: never configured, active, or explicitly cleared."""

    kind: Literal["unset", "active", "cleared"] = "unset"
    definition: Schema | None = None

    @model_validator(mode="after")
    def _check_definition(self) -> "SchemaState":
        if self.kind == "active" and self.definition is None:
            raise ValueError("active schema state requires a definition")
        if self.kind != "active" and self.definition is not None:
            raise ValueError(f"{self.kind} schema state cannot carry a definition")
        return self

    @classmethod
    def unset(cls) -> "SchemaState":
        return cls()

    @classmethod
    def active(cls, schema: Schema) -> "SchemaState":
        return cls(kind="active", definition=schema)

    @classmethod
    def cleared(cls) -> "SchemaState":
        return cls(kind="cleared")

    @property
    def is_active(self) -> bool:
        return self.kind == "active"

    @property
    def is_cleared(self) -> bool:
        return self.kind == "cleared"


class Endpoint(WireModel):
    """A stored definition of one HTTP call."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"] = "GET"
    url: str
    headers: dict[str, str] = {}
    body: str | None = None
    description: str = ""
    customizable_fields: frozenset[str] = frozenset()
    endpoint_name: str | None = None
    error_schema: ErrorSchema | None = None
    validations: list[ValidationRule] = []
    response_schema: SchemaState = SchemaState()
    actual_response: Any = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("body", mode="before")
    @classmethod
    def _serialize_body(cls, value: Any) -> Any:
        # collection files may carry the body as a mapping rather than JSON text
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2, ensure_ascii=False)
        return value

    @field_serializer("customizable_fields")
    def _sorted_fields(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    @property
    def path(self) -> str:
        """Path component of the URL, template tokens kept."""
        parts = urlsplit(self.url)
        if parts.scheme and parts.netloc:
            return parts.path or "/"
        path = _POSTMAN_HOST.sub("", self.url.strip()).split("?", 1)[0]
        return path if path.startswith("/") else "/" + path

    @property
    def accepts_body(self) -> bool:
        return self.method in BODY_METHODS

    def with_customizable_fields(self, fields) -> "Endpoint":
        """Return a copy whose customizable field set is replaced by ``fields``."""
        return self.model_copy(update={"customizable_fields": frozenset(fields)})


class Collection(WireModel):
    """A named list of endpoints with an optional collection-wide error schema."""

    name: str = ""
    error_schema: ErrorSchema | None = None
    endpoints: list[Endpoint] = []


class CapturedResponse(WireModel):
    """The response part of a successful execution."""

    status: int
    status_text: str = ""
    data: Any = None
    headers: dict[str, Any] = {}
    response_time: float = 0.0  # milliseconds


class ExecutionResult(WireModel):
    """Outcome of running one endpoint once. A new attempt yields a new result."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    endpoint: Endpoint
    status: Literal["success", "failed", "pending"]
    response: CapturedResponse | None = None
    error: str | None = None
    validation_results: list[ValidationRule] = []

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class ExtractedValue(BaseModel):
    """A distinct primitive found in a JSON document."""

    value: str
    path: str
    type: Literal["string", "number", "boolean"]
    count: int = 1


class GeneratedFile(BaseModel):
    name: str
    content: str


class GeneratedCode(WireModel):
    """Generated artifacts, one ordered list per category."""

    feature_files: list[GeneratedFile] = []
    step_definitions: list[GeneratedFile] = []
    service_classes: list[GeneratedFile] = []
    data_model_stubs: list[GeneratedFile] = []

    def all_files(self) -> list[GeneratedFile]:
        return self.feature_files + self.step_definitions + self.service_classes + self.data_model_stubs
