"""Per-endpoint generation plans.

A plan holds everything the renderers need for one endpoint: its artifact
identifier, the request body split into parameters and literals, the
effective error schema and the inferred model classes. Planning is where
malformed input is absorbed, so rendering never has to deal with it.
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, field_validator

from api_tester.models import Endpoint, ErrorSchema
from api_tester.naming import identifier, pascal_case, snake_case, unique
from api_tester.schema import ModelShape, infer_model, response_model
from api_tester.validation import parse_int

logger = logging.getLogger(__name__)

DEFAULT_BASE_PACKAGE = "api_tests"
DEFAULT_ERROR_STATUS = 400

_TEMPLATE_SEGMENT = re.compile(r"^(\{.*\}|:.+)$")
_PATH_TOKEN = re.compile(r"\{\{\s*(\w+)\s*\}\}|\{(\w+)\}|(?<=/):(\w+)")


class GeneratorOptions(BaseModel):
    """Settings for one generation run, passed explicitly at call time."""

    endpoint_name: str | None = None  # collection-wide naming override
    base_package: str = DEFAULT_BASE_PACKAGE
    error_schema: ErrorSchema | None = None  # collection-wide default
    generate_feature_files: bool = True
    generate_step_definitions: bool = True
    generate_service_classes: bool = True

    @field_validator("base_package")
    @classmethod
    def _clean_package(cls, value: str) -> str:
        parts = [identifier(part, fallback="pkg") for part in value.split(".") if part.strip()]
        return ".".join(parts) or DEFAULT_BASE_PACKAGE


class EndpointPlan(BaseModel):
    endpoint: Endpoint
    ident: str
    class_prefix: str
    type_name: str  # response model type, used only when a model is derived
    body: Any = None  # parsed request body, None when absent or malformed
    parameters: dict[str, Any] = {}
    literals: dict[str, Any] = {}
    request_model: ModelShape | None = None
    response_model: ModelShape | None = None
    error_status: int | None = None  # set when an error scenario is generated
    error_fields: list[str] = []
    error_model: ModelShape | None = None

    @property
    def model_type(self) -> str | None:
        return self.type_name if self.response_model else None

    @property
    def service_class(self) -> str:
        return f"{self.class_prefix}Service"

    @property
    def template_path(self) -> str:
        return template_path(self.endpoint.path)

    @property
    def path_tokens(self) -> list[str]:
        return re.findall(r"\{(\w+)\}", self.template_path)


def build_plans(endpoints: list[Endpoint], options: GeneratorOptions) -> list[EndpointPlan]:
    """Plan every endpoint; identifiers and model type names are unique within the run."""
    idents: set[str] = set()
    type_names: set[str] = set()
    plans = []
    for endpoint in endpoints:
        ident = unique(endpoint_identifier(endpoint, options), idents)
        plans.append(_plan(endpoint, ident, options, type_names))
    return plans


def endpoint_identifier(endpoint: Endpoint, options: GeneratorOptions | None = None) -> str:
    """Artifact identifier: the endpoint's own name, the run-wide name, or method + path."""
    if endpoint.endpoint_name and endpoint.endpoint_name.strip():
        return identifier(endpoint.endpoint_name)
    if options and options.endpoint_name and options.endpoint_name.strip():
        return identifier(options.endpoint_name)
    return identifier(f"{endpoint.method} {endpoint.path}")


def _plan(endpoint: Endpoint, ident: str, options: GeneratorOptions, type_names: set[str]) -> EndpointPlan:
    prefix = pascal_case(ident)
    body, parameters, literals = split_body(endpoint)

    plan = EndpointPlan(
        endpoint=endpoint,
        ident=ident,
        class_prefix=prefix,
        type_name=model_type_name(endpoint.path, prefix, type_names),
        body=body,
        parameters=parameters,
        literals=literals,
    )
    if isinstance(body, dict) and body:
        plan.request_model = infer_model(f"{prefix}Request", body)

    try:
        plan.response_model = response_model(endpoint, plan.type_name)
    except Exception:
        logger.exception("Could not derive a response model for %s %s; generating without it", endpoint.method, endpoint.path)
    if plan.response_model is not None:
        type_names.add(plan.type_name)

    error_schema = effective_error_schema(endpoint, options.error_schema)
    if error_schema is not None:
        plan.error_status = parse_int(error_schema.status_code) or DEFAULT_ERROR_STATUS
        sample = parse_error_structure(error_schema, endpoint)
        if isinstance(sample, dict):
            plan.error_fields = list(sample)
            plan.error_model = infer_model(f"{prefix}ErrorResponse", sample)
    return plan


def split_body(endpoint: Endpoint) -> tuple[Any, dict[str, Any], dict[str, Any]]:
    """Split the request body into ``(body, parameters, literals)``.

    Top-level fields named in ``customizable_fields`` become parameters, every
    other field stays a literal. Malformed JSON yields no body at all.
    """
    if not endpoint.accepts_body or not endpoint.body or not endpoint.body.strip():
        return None, {}, {}
    try:
        body = json.loads(endpoint.body)
    except json.JSONDecodeError as e:
        logger.warning(
            "Request body of %s %s is not valid JSON (%s); generating without request parameters",
            endpoint.method,
            endpoint.path,
            e.msg,
        )
        return None, {}, {}
    if not isinstance(body, dict):
        return body, {}, {}
    parameters = {k: v for k, v in body.items() if k in endpoint.customizable_fields}
    literals = {k: v for k, v in body.items() if k not in endpoint.customizable_fields}
    return body, parameters, literals


def effective_error_schema(endpoint: Endpoint, default: ErrorSchema | None) -> ErrorSchema | None:
    """The endpoint's own error schema wins over the collection default; ``None`` unless enabled."""
    schema = endpoint.error_schema if endpoint.error_schema is not None else default
    if schema is None or not schema.enabled:
        return None
    return schema


def parse_error_structure(schema: ErrorSchema, endpoint: Endpoint) -> Any:
    if not schema.error_structure.strip():
        return None
    try:
        return json.loads(schema.error_structure)
    except json.JSONDecodeError as e:
        logger.warning(
            "Error structure of %s %s is not valid JSON (%s); checking the status code only",
            endpoint.method,
            endpoint.path,
            e.msg,
        )
        return None


def model_type_name(path: str, prefix: str, taken: set[str]) -> str:
    """Response type name from the last literal path segment, e.g. ``/api/users/{id}`` -> ``UsersResponse``.

    A name already used in this run gets the endpoint's class prefix appended.
    """
    segments = [s for s in path.split("/") if s and not _TEMPLATE_SEGMENT.match(s)]
    resource = pascal_case(segments[-1]) if segments else ""
    name = f"{resource or prefix}Response"
    if name in taken:
        name = f"{name}{prefix}"
    candidate, counter = name, 2
    while candidate in taken:
        candidate = f"{name}{counter}"
        counter += 1
    return candidate


def model_module(type_name: str) -> str:
    return snake_case(type_name)


def template_path(path: str) -> str:
    """Rewrite ``{{id}}`` and ``:id`` tokens as ``{id}`` and escape any other braces for ``str.format``."""
    tokens: list[str] = []

    def keep(match: re.Match) -> str:
        tokens.append(next(g for g in match.groups() if g))
        return f"\x00{len(tokens) - 1}\x00"

    marked = _PATH_TOKEN.sub(keep, path)
    escaped = marked.replace("{", "{{").replace("}", "}}")
    return re.sub(r"\x00(\d+)\x00", lambda m: "{" + tokens[int(m.group(1))] + "}", escaped)
