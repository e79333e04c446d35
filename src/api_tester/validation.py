"""Validation engine — evaluate declarative rules against one captured response.

Three rule types are supported:

* ``status``    compares the HTTP status code with the expected value;
* ``value``     compares a field of the response body, addressed by a dotted
                path, with the expected value;
* ``existence`` checks whether a field is empty, null or present.

Evaluation never raises. A rule that cannot be evaluated fails with an
explanatory message and the remaining rules are still evaluated.
"""

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from api_tester.models import CapturedResponse, ValidationRule
from api_tester.paths import MISSING, JsonValue, is_absent, js_string, resolve

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_DECIMAL = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_HEX = re.compile(r"0[xX][0-9a-fA-F]+")


def evaluate(
    response: CapturedResponse | Mapping[str, Any] | None,
    rules: list[ValidationRule],
) -> list[ValidationRule]:
    """Return copies of ``rules`` with ``result`` and ``message`` filled in."""
    if isinstance(response, Mapping):
        response = CapturedResponse.model_validate(response)
    return [_evaluate_rule(response, rule) for rule in rules]


def _evaluate_rule(response: CapturedResponse | None, rule: ValidationRule) -> ValidationRule:
    try:
        result, message = check(response, rule)
    except Exception as exc:
        logger.warning("Rule %s (%s %s) could not be evaluated: %s", rule.id, rule.type, rule.field, exc)
        result, message = "fail", f"Validation error: {exc}"
    return rule.model_copy(update={"result": result, "message": message})


def check(response: CapturedResponse | None, rule: ValidationRule) -> tuple[str, str]:
    """Evaluate one rule, returning ``(result, message)``."""
    if response is None:
        return "fail", "No response to validate"
    if rule.type == "status":
        return _check_status(response.status, rule)
    if rule.type == "value":
        return _check_value(response.data, rule)
    if rule.type == "existence":
        return _check_existence(response.data, rule)
    return "fail", "Unknown validation type"


def _check_status(actual: int, rule: ValidationRule) -> tuple[str, str]:
    raw = rule.expected_value or "200"
    expected = parse_int(raw)
    shown = raw.strip() if expected is None else expected
    if rule.condition == "not_equals":
        passed = expected is None or actual != expected
        message = (
            f"Status {actual} is not {shown} as expected"
            if passed
            else f"Status {actual} should not be {shown}"
        )
    else:
        passed = expected is not None and actual == expected
        message = (
            f"Status {actual} matches expected {shown}"
            if passed
            else f"Status {actual} does not match expected {shown}"
        )
    return _verdict(passed), message


def _check_value(data: JsonValue, rule: ValidationRule) -> tuple[str, str]:
    actual = resolve(data, rule.field or "")
    expected_text = rule.expected_value or ""
    expected: str | bool = expected_text
    if expected_text == "true":
        expected = True
    elif expected_text == "false":
        expected = False

    condition = rule.condition or "equals"
    if condition == "not_equals":
        passed = not loose_equals(actual, expected)
    elif condition == "contains":
        passed = expected_text in js_string(actual)
    elif condition == "starts_with":
        passed = js_string(actual).startswith(expected_text)
    elif condition == "ends_with":
        passed = js_string(actual).endswith(expected_text)
    else:
        condition = "equals"
        passed = loose_equals(actual, expected)

    if passed:
        return "pass", f"{rule.field} {condition} {expected_text}"
    return "fail", f"{rule.field} is {_describe(actual)}, expected {condition} {expected_text}"


def _check_existence(data: JsonValue, rule: ValidationRule) -> tuple[str, str]:
    value = resolve(data, rule.field or "")
    # unknown conditions are checked as is_not_empty but reported as written
    condition = rule.condition or "is_not_empty"
    if condition == "is_empty":
        passed = value == "" or is_absent(value)
    elif condition == "is_null":
        passed = is_absent(value)
    elif condition == "is_not_null":
        passed = not is_absent(value)
    else:
        passed = not (value == "" or is_absent(value))

    if passed:
        return "pass", f"{rule.field} {condition}"
    return "fail", f"{rule.field} does not {condition}"


def _verdict(passed: bool) -> str:
    return "pass" if passed else "fail"


def _describe(value: JsonValue) -> str:
    if value is MISSING:
        return "undefined"
    return json.dumps(value, ensure_ascii=False)


# -- loose comparison ---------------------------------------------------------


def loose_equals(left: JsonValue, right: JsonValue) -> bool:
    """Compare two JSON values with JavaScript ``==`` semantics.

    Known quirk kept on purpose: ``"0"`` equals ``0`` and ``"1"`` equals ``true``.
    """
    if is_absent(left) or is_absent(right):
        return is_absent(left) and is_absent(right)
    if isinstance(left, (dict, list)) and isinstance(right, (dict, list)):
        return left is right
    if isinstance(left, bool) and isinstance(right, bool):
        return left == right
    if isinstance(left, bool):
        return loose_equals(1 if left else 0, right)
    if isinstance(right, bool):
        return loose_equals(left, 1 if right else 0)
    if isinstance(left, (dict, list)):
        return loose_equals(js_string(left), right)
    if isinstance(right, (dict, list)):
        return loose_equals(left, js_string(right))
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return to_number(left) == to_number(right)


def to_number(value: JsonValue) -> float:
    """Numeric conversion of a primitive, ``nan`` when it has no numeric reading."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return math.nan
    text = value.strip()
    if not text:
        return 0.0
    if _DECIMAL.fullmatch(text):
        return float(text)
    if _HEX.fullmatch(text):
        return float(int(text, 16))
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    return math.nan


def parse_int(text: str | None) -> int | None:
    """Leading integer of ``text`` (``"200 OK"`` -> 200), ``None`` when there is none."""
    match = _LEADING_INT.match(text or "")
    return int(match.group(1)) if match else None


# -- helpers for callers ------------------------------------------------------


def default_status_rule(endpoint_id: str) -> ValidationRule:
    """The status-200 rule applied when an endpoint has no rules of its own."""
    return ValidationRule(
        id=f"default-{endpoint_id}",
        type="status",
        expected_value="200",
        condition="equals",
    )


def summarize(rules: list[ValidationRule]) -> tuple[int, int]:
    """Return ``(passed, total)`` for evaluated rules."""
    passed = sum(1 for rule in rules if rule.result == "pass")
    return passed, len(rules)
