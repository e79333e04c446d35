"""BDD code generator — turns endpoints into feature files, step modules, service and model stubs.

Output is deterministic: the same endpoints and options always produce the
same files. Nothing here touches the file system; see ``api_tester.export``.
"""

import json
import logging
import re
from urllib.parse import urlsplit
from typing import Any

from api_tester.generator.plan import EndpointPlan, GeneratorOptions, build_plans, model_module
from api_tester.models import Endpoint, ExecutionResult, GeneratedCode, GeneratedFile, ValidationRule
from api_tester.naming import python_attribute, unique
from api_tester.schema import ModelClass, ModelShape
from api_tester.validation import parse_int

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"
SUCCESS_STEP = "the response should be successful"

_VALUE_PHRASES = {
    "equals": "equal",
    "not_equals": "not equal",
    "contains": "contain",
    "starts_with": "start with",
    "ends_with": "end with",
}
_EXISTENCE_PHRASES = {
    "is_empty": "be empty",
    "is_not_empty": "not be empty",
    "is_null": "be null",
    "is_not_null": "not be null",
}

# Generated checks reproduce api_tester.validation: JavaScript-style
# stringification and ``==``, and an unresolved path distinct from null.
MISSING_DEFINITION = "MISSING = object()  # value of a path that does not resolve"

_FIELD_HELPER = '''def _field(data, path):
    for segment in path.split("."):
        if not segment:
            continue
        if not isinstance(data, dict) or segment not in data:
            return MISSING
        data = data[segment]
    return data'''

_ABSENT_HELPER = '''def _absent(value):
    return value is None or value is MISSING'''

_EMPTY_HELPER = '''def _empty(value):
    return value == "" or _absent(value)'''

_TEXT_HELPER = '''def _text(value):
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        mantissa, _, exponent = repr(value).partition("e")
        if not exponent:
            return mantissa
        power = int(exponent)
        return mantissa + ("e+" if power > 0 else "e-") + str(abs(power))
    if isinstance(value, list):
        return ",".join("" if _absent(item) else _text(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)'''

_NUMBER_HELPER = r'''def _number(value):
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return math.nan
    text = value.strip()
    if not text:
        return 0.0
    if re.fullmatch(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", text):
        return float(text)
    if re.fullmatch(r"0[xX][0-9a-fA-F]+", text):
        return float(int(text, 16))
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    return math.nan'''

_LOOSE_EQUALS_HELPER = '''def _loose_equals(left, right):
    """JavaScript ``==``: ``"0" == 0`` and ``"1" == true`` hold, ``null == "null"`` does not."""
    if _absent(left) or _absent(right):
        return _absent(left) and _absent(right)
    if isinstance(left, (dict, list)) and isinstance(right, (dict, list)):
        return left is right
    if isinstance(left, bool) and isinstance(right, bool):
        return left == right
    if isinstance(left, bool):
        return _loose_equals(1 if left else 0, right)
    if isinstance(right, bool):
        return _loose_equals(left, 1 if right else 0)
    if isinstance(left, (dict, list)):
        return _loose_equals(_text(left), right)
    if isinstance(right, (dict, list)):
        return _loose_equals(left, _text(right))
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return _number(left) == _number(right)'''


class BddCodeGenerator:
    """Generates a pytest-bdd test suite skeleton from executed endpoints."""

    def generate(self, endpoints: list[Endpoint], options: GeneratorOptions | None = None) -> GeneratedCode:
        """Generate one feature file, step module and service stub per endpoint.

        Endpoints with response shape data also get a model stub.
        """
        options = options or GeneratorOptions()
        code = GeneratedCode()
        model_files: set[str] = set()

        for plan in build_plans(endpoints, options):
            logger.debug("Generating artifacts for %s %s as %s", plan.endpoint.method, plan.endpoint.path, plan.ident)
            if options.generate_feature_files:
                code.feature_files.append(
                    GeneratedFile(name=f"{plan.ident}.feature", content=self._render_feature(plan))
                )
            if options.generate_step_definitions:
                code.step_definitions.append(
                    GeneratedFile(name=f"test_{plan.ident}_steps.py", content=self._render_steps(plan, options))
                )
            if options.generate_service_classes:
                code.service_classes.append(
                    GeneratedFile(name=f"{plan.ident}_service.py", content=self._render_service(plan))
                )
            if plan.response_model is not None:
                filename = unique(model_module(plan.model_type), model_files) + ".py"
                code.data_model_stubs.append(GeneratedFile(name=filename, content=self._render_model_stub(plan)))

        return code

    # -- feature files --------------------------------------------------------

    def _render_feature(self, plan: EndpointPlan) -> str:
        ep = plan.endpoint
        title = " ".join(ep.name.split()) or f"{ep.method} {ep.path}"
        lines = [f"@{plan.ident}", f"Feature: {title}", f"  {ep.method} {ep.path}"]
        lines.extend(f"  {line.strip()}" for line in ep.description.splitlines() if line.strip())
        lines.append("")

        keyword = "Scenario Outline" if plan.parameters else "Scenario"
        lines.append(f"  {keyword}: {plan.ident} returns the expected response")
        lines.append(f"    Given the {plan.ident} request payload")
        for key in plan.parameters:
            lines.append(f'    And the request field "{key}" is "<{key}>"')
        lines.append(f"    When the {plan.ident} request is sent")
        for i, text in enumerate(self._check_steps(plan)):
            lines.append(f"    {'Then' if i == 0 else 'And'} {text}")

        if plan.parameters:
            lines.extend(["", "    Examples:"])
            lines.extend(f"      {row}" for row in _table(plan.parameters))

        if plan.error_status is not None:
            lines.extend([
                "",
                f"  Scenario: {plan.ident} rejects an invalid request",
                f"    Given the {plan.ident} error request payload",
                f"    When the {plan.ident} request is sent",
                f"    Then the error response status should be {plan.error_status}",
            ])
            if plan.error_fields:
                lines.append("    And the error response should contain the expected fields")

        return "\n".join(lines) + "\n"

    def _check_steps(self, plan: EndpointPlan) -> list[str]:
        steps = [rule_step(rule) for rule in plan.endpoint.validations] or [SUCCESS_STEP]
        if plan.model_type:
            steps.append(f"the response should match the {plan.model_type} model")
        return steps

    # -- step definitions -----------------------------------------------------

    def _render_steps(self, plan: EndpointPlan, options: GeneratorOptions) -> str:
        ep = plan.endpoint
        rules = ep.validations
        converters = {key: _converter(value) for key, value in plan.parameters.items()}

        helper_imports, helpers = check_helpers(rules)
        stdlib = list(helper_imports)
        if isinstance(plan.body, (dict, list)):
            stdlib.append("import copy")
        if any(c.startswith("json.") for c in converters.values()):
            stdlib.append("import json")
        bdd_names = ["given", "scenarios", "then", "when"]
        if plan.parameters:
            bdd_names.insert(1, "parsers")
        package = options.base_package
        depth = len(package.split(".")) + 1

        header = [f'"""Step definitions for {_doc(f"{ep.method} {ep.path}")}."""', ""]
        if stdlib:
            header.extend(sorted(stdlib) + [""])
        header.extend([
            "import pytest",
            f"from pytest_bdd import {', '.join(bdd_names)}",
            "",
            f"from {package}.service.{plan.ident}_service import {plan.service_class}",
        ])

        setup = [f'scenarios("{"../" * depth}resources/features/{plan.ident}.feature")']
        body = plan.literals if isinstance(plan.body, dict) else plan.body
        setup.extend(["", f"DEFAULT_BODY = {py_literal(body)}"])
        if plan.error_fields:
            setup.append(f"ERROR_FIELDS = {py_literal(plan.error_fields)}")
        if helpers:
            setup.append(MISSING_DEFINITION)

        blocks = ["\n".join(header), "\n".join(setup)]
        blocks.append(f"@pytest.fixture\ndef service():\n    return {plan.service_class}()")

        payload = "copy.deepcopy(DEFAULT_BODY)" if isinstance(body, (dict, list)) else "DEFAULT_BODY"
        blocks.append(
            f'@given({f"the {plan.ident} request payload"!r}, target_fixture="request_body")\n'
            f"def default_request_body():\n"
            f"    return {payload}"
        )

        attributes: set[str] = {"request_body"}
        for key, value in plan.parameters.items():
            attr = unique(python_attribute(key), attributes)
            # also matches an empty value
            pattern = f'the request field "{re.escape(key)}" is "(?P<{attr}>.*)"'
            blocks.append(
                f"@given(parsers.re({pattern!r}))\n"
                f"def set_{attr}(request_body, {attr}):\n"
                f"    request_body[{key!r}] = {converters[key].format(attr)}"
            )

        blocks.append(
            f'@when({f"the {plan.ident} request is sent"!r}, target_fixture="response")\n'
            f"def send_request(service, request_body):\n"
            f"    return service.send(request_body)"
        )

        if rules:
            for i, rule in enumerate(rules, start=1):
                blocks.append(f"@then({rule_step(rule)!r})\ndef check_rule_{i}(response):\n    {assertion(rule)}")
        else:
            blocks.append(
                f"@then({SUCCESS_STEP!r})\ndef check_success(response):\n    assert 200 <= response.status_code < 300"
            )

        if plan.model_type:
            blocks.append(
                f"@then({f'the response should match the {plan.model_type} model'!r})\n"
                f"def check_response_model(service, response):\n"
                f"    assert service.parse_response(response) is not None"
            )

        if plan.error_status is not None:
            error_payload = "{}" if ep.accepts_body else "None"
            blocks.append(
                f'@given({f"the {plan.ident} error request payload"!r}, target_fixture="request_body")\n'
                f"def error_request_body():\n"
                f"    return {error_payload}"
            )
            blocks.append(
                f"@then({f'the error response status should be {plan.error_status}'!r})\n"
                f"def check_error_status(response):\n"
                f"    assert response.status_code == {plan.error_status}"
            )
            if plan.error_fields:
                blocks.append(
                    "@then('the error response should contain the expected fields')\n"
                    "def check_error_fields(response):\n"
                    "    body = response.json()\n"
                    "    missing = [field for field in ERROR_FIELDS if field not in body]\n"
                    '    assert not missing, f"missing error fields: {missing}"'
                )

        blocks.extend(helpers)

        return "\n\n\n".join(blocks) + "\n"

    # -- service stubs --------------------------------------------------------

    def _render_service(self, plan: EndpointPlan) -> str:
        ep = plan.endpoint
        shapes = [s for s in (plan.request_model, plan.response_model, plan.error_model) if s is not None]

        header = [f'"""Service client for {_doc(f"{ep.method} {ep.path}")}."""', "", "import os", "from typing import Any", ""]
        header.append("import requests")
        if shapes:
            header.append(_pydantic_import(shapes))

        constants = [
            f'BASE_URL = os.getenv("API_BASE_URL", {base_url(ep.url)!r})',
            f"HEADERS = {py_literal(dict(ep.headers))}",
        ]
        blocks = ["\n".join(header), "\n".join(constants)]
        for shape in shapes:
            blocks.extend(_render_class(cls) for cls in shape.classes)

        lines = [
            f"class {plan.service_class}:",
            f'    """{_doc(f"{ep.name or plan.ident}: {ep.method} {ep.path}")}"""',
            "",
            f"    method = {ep.method!r}",
            f"    path = {plan.template_path!r}",
        ]
        if plan.path_tokens:
            lines.append(f"    path_defaults = {py_literal({token: '1' for token in plan.path_tokens}, 1)}")
        lines.extend([
            "",
            "    def __init__(self, base_url: str = BASE_URL, session: requests.Session | None = None):",
            '        self.base_url = base_url.rstrip("/")',
            "        self.session = session or requests.Session()",
            "        self.session.headers.update(HEADERS)",
            "",
            "    def url(self, **path_params: Any) -> str:",
        ])
        if plan.path_tokens:
            lines.append("        return self.base_url + self.path.format(**{**self.path_defaults, **path_params})")
        else:
            lines.append("        return self.base_url + self.path.format(**path_params)")
        lines.extend([
            "",
            "    def send(self, body: Any = None, **path_params: Any) -> requests.Response:",
            "        return self.session.request(self.method, self.url(**path_params), json=body)",
        ])

        if plan.request_model is not None:
            request_type = plan.request_model.root
            lines.extend([
                "",
                f"    def send_model(self, request: {request_type}, **path_params: Any) -> requests.Response:",
                "        return self.send(request.model_dump(by_alias=True), **path_params)",
            ])

        lines.append("")
        lines.extend(_parse_method("parse_response", plan.response_model, plan.type_name))
        if plan.error_model is not None:
            lines.append("")
            lines.extend(_parse_method("parse_error", plan.error_model, f"{plan.class_prefix}ErrorResponse"))

        blocks.append("\n".join(lines))
        return "\n\n\n".join(blocks) + "\n"

    # -- model stubs ----------------------------------------------------------

    def _render_model_stub(self, plan: EndpointPlan) -> str:
        ep = plan.endpoint
        shape = plan.response_model
        header = [f'"""Response model for {_doc(f"{ep.method} {ep.path}")}."""', ""]
        if _uses_any([shape]):
            header.extend(["from typing import Any", ""])
        header.append(_pydantic_import([shape]))
        blocks = ["\n".join(header)]
        blocks.extend(_render_class(cls) for cls in shape.classes)
        return "\n\n\n".join(blocks) + "\n"


# -- rule translation ----------------------------------------------------------


def rule_step(rule: ValidationRule) -> str:
    """Gherkin step text for a validation rule."""
    if rule.type == "status":
        verb = "should not be" if rule.condition == "not_equals" else "should be"
        return f"the response status {verb} {_status_text(rule)}"
    if rule.type == "value":
        phrase = _VALUE_PHRASES.get(rule.condition or "equals", "equal")
        return f'the response field "{rule.field}" should {phrase} "{rule.expected_value}"'
    phrase = _EXISTENCE_PHRASES.get(rule.condition or "is_not_empty", "not be empty")
    return f'the response field "{rule.field}" should {phrase}'


def assertion(rule: ValidationRule) -> str:
    """The single assert statement checking ``rule`` against a ``requests`` response."""
    if rule.type == "status":
        expected = parse_int(rule.expected_value or "200")
        operator = "!=" if rule.condition == "not_equals" else "=="
        if expected is None:
            return f"assert str(response.status_code) {operator} {(rule.expected_value or '').strip()!r}"
        return f"assert response.status_code {operator} {expected}"

    actual = f"_field(response.json(), {rule.field!r})"
    if rule.type == "value":
        text = rule.expected_value or ""
        expected: str | bool = {"true": True, "false": False}.get(text, text)
        condition = _value_condition(rule)
        if condition == "not_equals":
            return f"assert not _loose_equals({actual}, {expected!r})"
        if condition == "contains":
            return f"assert {text!r} in _text({actual})"
        if condition == "starts_with":
            return f"assert _text({actual}).startswith({text!r})"
        if condition == "ends_with":
            return f"assert _text({actual}).endswith({text!r})"
        return f"assert _loose_equals({actual}, {expected!r})"

    condition = _existence_condition(rule)
    if condition == "is_empty":
        return f"assert _empty({actual})"
    if condition == "is_null":
        return f"assert _absent({actual})"
    if condition == "is_not_null":
        return f"assert not _absent({actual})"
    return f"assert not _empty({actual})"


def check_helpers(rules: list[ValidationRule]) -> tuple[list[str], list[str]]:
    """Stdlib imports and helper functions needed by the assertions for ``rules``.

    When helpers are returned the module must also define ``MISSING_DEFINITION``.
    """
    values = {_value_condition(rule) for rule in rules if rule.type == "value"}
    existence = {_existence_condition(rule) for rule in rules if rule.type == "existence"}
    if not values and not existence:
        return [], []

    imports: list[str] = []
    blocks = [_FIELD_HELPER, _ABSENT_HELPER]
    if existence & {"is_empty", "is_not_empty"}:
        blocks.append(_EMPTY_HELPER)
    if values:
        imports.append("import math")
        blocks.append(_TEXT_HELPER)
    if values & {"equals", "not_equals"}:
        imports.append("import re")
        blocks.extend([_NUMBER_HELPER, _LOOSE_EQUALS_HELPER])
    return imports, blocks


def _value_condition(rule: ValidationRule) -> str:
    return rule.condition if rule.condition in _VALUE_PHRASES else "equals"


def _existence_condition(rule: ValidationRule) -> str:
    return rule.condition if rule.condition in _EXISTENCE_PHRASES else "is_not_empty"


def _status_text(rule: ValidationRule) -> str:
    expected = parse_int(rule.expected_value or "200")
    return str(expected) if expected is not None else (rule.expected_value or "").strip()


# -- rendering helpers ----------------------------------------------------------


def py_literal(value: Any, indent: int = 0) -> str:
    """Python source for a JSON value, one item per line for non-empty containers."""
    pad = "    " * (indent + 1)
    closing = "    " * indent
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = [f"{pad}{key!r}: {py_literal(item, indent + 1)}," for key, item in value.items()]
        return "{\n" + "\n".join(items) + f"\n{closing}}}"
    if isinstance(value, list):
        if not value:
            return "[]"
        items = [f"{pad}{py_literal(item, indent + 1)}," for item in value]
        return "[\n" + "\n".join(items) + f"\n{closing}]"
    return repr(value)


def base_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return DEFAULT_BASE_URL


def _converter(default: Any) -> str:
    """Expression template turning placeholder text back into the default's type."""
    if isinstance(default, bool):
        return '{} == "true"'
    if isinstance(default, int):
        return "int({})"
    if isinstance(default, float):
        return "float({})"
    if isinstance(default, str):
        return "{}"
    return "json.loads({})"


def _example_value(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return text.replace("\n", "\\n").replace("|", "\\|")


def _table(parameters: dict[str, Any]) -> list[str]:
    header = list(parameters)
    row = [_example_value(value) for value in parameters.values()]
    widths = [max(len(h), len(r)) for h, r in zip(header, row)]
    return [
        "| " + " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)) + " |"
        for cells in (header, row)
    ]


def _doc(text: str) -> str:
    """Text safe to embed in a generated docstring."""
    return " ".join(text.split()).replace("\\", "/").replace('"', "'")


def _uses_any(shapes: list[ModelShape]) -> bool:
    return any("Any" in f.type_hint for s in shapes for c in s.classes for f in c.fields)


def _uses_alias(shapes: list[ModelShape]) -> bool:
    return any(f.aliased for s in shapes for c in s.classes for f in c.fields)


def _pydantic_import(shapes: list[ModelShape]) -> str:
    names = ["BaseModel", "ConfigDict", "Field"] if _uses_alias(shapes) else ["BaseModel"]
    return f"from pydantic import {', '.join(names)}"


def _render_class(cls: ModelClass) -> str:
    lines = [f"class {cls.name}(BaseModel):"]
    if any(f.aliased for f in cls.fields):
        lines.extend(["    model_config = ConfigDict(populate_by_name=True)", ""])
    for f in cls.fields:
        hint = f.type_hint
        if f.optional and hint != "Any":
            hint = f"{hint} | None"
        if f.aliased:
            default = f"Field(default=None, alias={f.name!r})" if f.optional else f"Field(alias={f.name!r})"
            lines.append(f"    {f.attribute}: {hint} = {default}")
        elif f.optional:
            lines.append(f"    {f.attribute}: {hint} = None")
        else:
            lines.append(f"    {f.attribute}: {hint}")
    if len(lines) == 1:
        lines.append("    pass")
    return "\n".join(lines)


def _parse_method(name: str, shape: ModelShape | None, type_name: str) -> list[str]:
    if shape is None:
        return [
            f"    def {name}(self, response: requests.Response) -> Any:",
            f"        # {type_name} = dict until a response has been captured",
            "        return response.json()",
        ]
    if shape.many:
        return [
            f"    def {name}(self, response: requests.Response) -> list[{shape.root}]:",
            f"        return [{shape.root}.model_validate(item) for item in response.json()]",
        ]
    return [
        f"    def {name}(self, response: requests.Response) -> {shape.root}:",
        f"        return {shape.root}.model_validate(response.json())",
    ]


# -- execution results ------------------------------------------------------------


def attach_results(
    endpoints: list[Endpoint],
    results: list[ExecutionResult],
    only_successful: bool = False,
) -> list[Endpoint]:
    """Copy captured responses and evaluated rules from ``results`` onto endpoint snapshots.

    Results are matched by endpoint id; the last result for an id wins. With
    ``only_successful`` endpoints without a successful execution are dropped.
    """
    by_id = {result.endpoint.id: result for result in results}
    merged = []
    for endpoint in endpoints:
        result = by_id.get(endpoint.id)
        if result is None or not result.succeeded or result.response is None:
            if not only_successful:
                merged.append(endpoint)
            continue
        update: dict[str, Any] = {"actual_response": result.response.data}
        if result.validation_results:
            update["validations"] = list(result.validation_results)
        merged.append(endpoint.model_copy(update=update))
    return merged
