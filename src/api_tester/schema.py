"""Schema synthesis — source response shapes and derive model classes from them.

A response schema comes from one of three places:

* ``external``  a definition looked up in a catalog, typically the response
                schemas of an imported OpenAPI document;
* ``inferred``  a captured response sample, kept as-is;
* ``manual``    JSON text written by the user.

Endpoints carry the result as a :class:`~api_tester.models.SchemaState`
(unset / active / cleared). The second half of the module turns a sample or
a JSON-Schema definition into the flat list of classes used by the
generated model stubs.
"""

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from api_tester.errors import SchemaParseError
from api_tester.models import Endpoint, Schema, SchemaState
from api_tester.naming import pascal_case, python_attribute, unique

SOURCES = ("external", "inferred", "manual")

SchemaCatalog = Mapping[tuple[str, str, str], Any]  # (METHOD, path, role) -> definition


def synthesize(
    source: str,
    payload: Any = None,
    *,
    catalog: SchemaCatalog | None = None,
    method: str | None = None,
    path: str | None = None,
    role: str = "response",
) -> Schema | None:
    """Build a schema from ``source``; ``None`` when there is nothing to build from.

    Raises :class:`SchemaParseError` when manual text is not valid JSON.
    """
    if source == "external":
        if not catalog or method is None or path is None:
            return None
        definition = catalog.get((method.upper(), path, role))
        return None if definition is None else Schema(source="external", data=definition)

    if source == "inferred":
        return None if payload is None else Schema(source="inferred", data=payload)

    if source == "manual":
        if payload is None:
            return None
        if not isinstance(payload, str):
            return Schema(source="manual", data=payload)
        if not payload.strip():
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SchemaParseError(f"Invalid JSON in manual schema: {e.msg} (line {e.lineno})", source="manual") from e
        return Schema(source="manual", data=data)

    raise ValueError(f"Unknown schema source: {source!r} (expected one of {', '.join(SOURCES)})")


def attach(endpoint: Endpoint, state: SchemaState) -> Endpoint:
    """Return a copy of ``endpoint`` with ``state`` attached.

    Clearing also drops the endpoint's own error schema.
    """
    update: dict[str, Any] = {"response_schema": state}
    if state.is_cleared:
        update["error_schema"] = None
    return endpoint.model_copy(update=update)


# -- model inference ----------------------------------------------------------


class ModelField(BaseModel):
    name: str  # JSON key
    attribute: str  # Python attribute
    type_hint: str
    optional: bool = False

    @property
    def aliased(self) -> bool:
        return self.name != self.attribute


class ModelClass(BaseModel):
    name: str
    fields: list[ModelField] = []


class ModelShape(BaseModel):
    """Classes for one payload, nested classes listed before the classes using them."""

    root: str
    many: bool = False  # payload is a list of ``root`` objects
    classes: list[ModelClass] = []


def infer_model(name: str, sample: Any) -> ModelShape | None:
    """Derive model classes from a JSON sample. Non-object payloads yield ``None``."""
    many = False
    if isinstance(sample, list):
        if not sample:
            return None
        sample, many = sample[0], True
    if not isinstance(sample, dict):
        return None
    classes: list[ModelClass] = []
    _sample_class(name, sample, classes, {name})
    return ModelShape(root=name, many=many, classes=classes)


def _sample_class(name: str, obj: dict, classes: list[ModelClass], taken: set[str]) -> None:
    fields = []
    attributes: set[str] = set()
    for key, value in obj.items():
        hint = _sample_hint(name, str(key), value, classes, taken)
        fields.append(
            ModelField(
                name=str(key),
                attribute=unique(python_attribute(str(key)), attributes),
                type_hint=hint,
                optional=value is None,
            )
        )
    classes.append(ModelClass(name=name, fields=fields))


def _sample_hint(parent: str, key: str, value: Any, classes: list[ModelClass], taken: set[str]) -> str:
    if value is None:
        return "Any"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    if isinstance(value, dict):
        if not value:
            return "dict[str, Any]"
        nested = unique(parent + pascal_case(key), taken, separator="")
        _sample_class(nested, value, classes, taken)
        return nested
    if isinstance(value, list):
        if not value:
            return "list[Any]"
        first = value[0]
        if isinstance(first, dict) and first:
            nested = unique(parent + pascal_case(key) + "Item", taken, separator="")
            _sample_class(nested, first, classes, taken)
            return f"list[{nested}]"
        return f"list[{_sample_hint(parent, key, first, classes, taken)}]"
    return "Any"


_JSON_SCHEMA_TYPES = {"string": "str", "integer": "int", "number": "float", "boolean": "bool"}


def model_from_json_schema(name: str, schema: Any) -> ModelShape | None:
    """Derive model classes from a JSON-Schema / OpenAPI schema object."""
    if not isinstance(schema, dict):
        return None
    many = False
    if schema.get("type") == "array":
        schema, many = schema.get("items") or {}, True
    if not isinstance(schema.get("properties"), dict):
        return None
    classes: list[ModelClass] = []
    _schema_class(name, schema, classes, {name})
    return ModelShape(root=name, many=many, classes=classes)


def _schema_class(name: str, schema: dict, classes: list[ModelClass], taken: set[str]) -> None:
    required = set(schema.get("required") or [])
    fields = []
    attributes: set[str] = set()
    for key, prop in schema["properties"].items():
        hint = _schema_hint(name, str(key), prop if isinstance(prop, dict) else {}, classes, taken)
        fields.append(
            ModelField(
                name=str(key),
                attribute=unique(python_attribute(str(key)), attributes),
                type_hint=hint,
                optional=key not in required,
            )
        )
    classes.append(ModelClass(name=name, fields=fields))


def _schema_hint(parent: str, key: str, prop: dict, classes: list[ModelClass], taken: set[str]) -> str:
    kind = prop.get("type")
    if kind in _JSON_SCHEMA_TYPES:
        return _JSON_SCHEMA_TYPES[kind]
    if kind == "array":
        items = prop.get("items") if isinstance(prop.get("items"), dict) else {}
        if isinstance(items.get("properties"), dict):
            nested = unique(parent + pascal_case(key) + "Item", taken, separator="")
            _schema_class(nested, items, classes, taken)
            return f"list[{nested}]"
        return f"list[{_schema_hint(parent, key, items, classes, taken)}]"
    if isinstance(prop.get("properties"), dict):
        nested = unique(parent + pascal_case(key), taken, separator="")
        _schema_class(nested, prop, classes, taken)
        return nested
    if kind == "object":
        return "dict[str, Any]"
    return "Any"


def response_model(endpoint: Endpoint, name: str) -> ModelShape | None:
    """Model classes for the endpoint's response, from whichever source applies.

    An active schema wins; a cleared schema means no model at all; with no
    schema configured the captured response sample is used when present.
    """
    state = endpoint.response_schema
    if state.is_cleared:
        return None
    if state.is_active:
        schema = state.definition
        if schema.source == "external":
            return model_from_json_schema(name, schema.data)
        return infer_model(name, schema.data)
    if endpoint.actual_response is None:
        return None
    return infer_model(name, endpoint.actual_response)
