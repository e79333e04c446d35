from unittest.mock import patch

import pytest

from api_tester.models import CapturedResponse, ValidationRule
from api_tester.paths import MISSING
from api_tester.validation import (
    default_status_rule,
    evaluate,
    loose_equals,
    parse_int,
    summarize,
    to_number,
)


def _response(status=200, data=None):
    return CapturedResponse(status=status, data=data)


def _one(response, **rule):
    return evaluate(response, [ValidationRule(**rule)])[0]


class TestStatusRules:
    def test_scenario_success_flag(self):
        result = evaluate({"status": 200, "data": {"success": True}}, [ValidationRule(type="status", expected_value="200")])
        assert result[0].result == "pass"

    def test_mismatch(self):
        rule = _one(_response(200), type="status", expected_value="404")
        assert rule.result == "fail"
        assert "200" in rule.message and "404" in rule.message

    def test_not_equals(self):
        assert _one(_response(500), type="status", expected_value="200", condition="not_equals").result == "pass"
        assert _one(_response(200), type="status", expected_value="200", condition="not_equals").result == "fail"

    def test_leading_integer_parsed(self):
        assert _one(_response(201), type="status", expected_value="201 Created").result == "pass"

    def test_unparsable_never_matches(self):
        assert _one(_response(200), type="status", expected_value="OK").result == "fail"

    def test_unknown_condition_behaves_as_equals(self):
        assert _one(_response(200), type="status", expected_value="200", condition="contains").result == "pass"

    def test_messages(self):
        assert _one(_response(200), type="status", expected_value="200").message == "Status 200 matches expected 200"
        assert _one(_response(404), type="status", expected_value="200").message == "Status 404 does not match expected 200"


class TestValueRules:
    DATA = {"user": {"name": "Jane Doe", "age": 30, "active": True, "code": "0"}}

    @pytest.mark.parametrize(
        "field,expected,condition,outcome",
        [
            ("user.name", "Jane Doe", "equals", "pass"),
            ("user.name", "John", "equals", "fail"),
            ("user.name", "John", "not_equals", "pass"),
            ("user.name", "Jane", "starts_with", "pass"),
            ("user.name", "Doe", "ends_with", "pass"),
            ("user.name", "e D", "contains", "pass"),
            ("user.name", "xyz", "contains", "fail"),
            ("user.age", "30", "equals", "pass"),
            ("user.age", "3", "contains", "pass"),
            ("user.active", "true", "equals", "pass"),
            ("user.active", "false", "equals", "fail"),
            ("user.code", "0", None, "pass"),
            ("user.name", "Jane Doe", "matches_regex", "pass"),
        ],
    )
    def test_conditions(self, field, expected, condition, outcome):
        rule = _one(_response(data=self.DATA), type="value", field=field, expected_value=expected, condition=condition)
        assert rule.result == outcome

    def test_missing_field_fails_with_undefined(self):
        rule = _one(_response(data=self.DATA), type="value", field="user.email", expected_value="x")
        assert rule.result == "fail"
        assert rule.message == "user.email is undefined, expected equals x"

    def test_pass_message(self):
        rule = _one(_response(data=self.DATA), type="value", field="user.age", expected_value="30")
        assert rule.message == "user.age equals 30"


class TestExistenceRules:
    DATA = {"a": {"b": None, "c": "", "d": "x"}}

    @pytest.mark.parametrize(
        "field,condition,outcome",
        [
            ("a.b", "is_null", "pass"),
            ("a.c", "is_not_empty", "fail"),
            ("a.d", "is_not_empty", "pass"),
            ("a.e", "is_not_null", "fail"),
            ("a.e", "is_null", "pass"),
            ("a.c", "is_empty", "pass"),
            ("a.b", "is_empty", "pass"),
            ("a.d", "is_empty", "fail"),
            ("a.d", "is_not_null", "pass"),
            ("a.d", None, "pass"),
            ("a.c", "whatever", "fail"),
        ],
    )
    def test_classification(self, field, condition, outcome):
        rule = _one(_response(data=self.DATA), type="existence", field=field, condition=condition)
        assert rule.result == outcome

    def test_messages(self):
        assert _one(_response(data=self.DATA), type="existence", field="a.d").message == "a.d is_not_empty"
        assert _one(_response(data=self.DATA), type="existence", field="a.c").message == "a.c does not is_not_empty"

    def test_unknown_condition_reported_as_written(self):
        passed = _one(_response(data=self.DATA), type="existence", field="a.d", condition="has_value")
        failed = _one(_response(data=self.DATA), type="existence", field="a.c", condition="has_value")
        assert (passed.result, passed.message) == ("pass", "a.d has_value")
        assert (failed.result, failed.message) == ("fail", "a.c does not has_value")


class TestEvaluate:
    def test_no_response(self):
        rules = evaluate(None, [ValidationRule(type="status", expected_value="200")])
        assert rules[0].result == "fail"
        assert rules[0].message == "No response to validate"

    def test_inputs_not_mutated(self):
        rule = ValidationRule(type="status", expected_value="200")
        evaluate(_response(200), [rule])
        assert rule.result is None
        assert rule.message is None

    def test_order_preserved(self):
        rules = [
            ValidationRule(id="1", type="status", expected_value="200"),
            ValidationRule(id="2", type="existence", field="x"),
        ]
        assert [r.id for r in evaluate(_response(200, {}), rules)] == ["1", "2"]

    def test_unknown_type(self):
        rule = ValidationRule.model_construct(id="r", type="schema", field="x", expected_value="y")
        assert evaluate(_response(200), [rule])[0].message == "Unknown validation type"

    def test_internal_error_isolated(self):
        rules = [
            ValidationRule(id="1", type="value", field="a", expected_value="x"),
            ValidationRule(id="2", type="status", expected_value="200"),
        ]
        with patch("api_tester.validation._check_value", side_effect=RuntimeError("boom")):
            results = evaluate(_response(200, {"a": "x"}), rules)
        assert results[0].result == "fail"
        assert results[0].message == "Validation error: boom"
        assert results[1].result == "pass"


class TestLooseEquals:
    @pytest.mark.parametrize(
        "left,right,expected",
        [
            (200, "200", True),
            (0, "0", True),
            ("0", 0, True),
            (1, True, True),
            ("1", True, True),
            (0, False, True),
            ("", 0, True),
            ("abc", "abc", True),
            ("abc", "ABC", False),
            (None, None, True),
            (MISSING, None, True),
            (None, 0, False),
            (None, "", False),
            ([1, 2], "1,2", True),
            ({"a": 1}, "[object Object]", True),
            (1.5, "1.5", True),
            ("0x10", 16, True),
            ("abc", 0, False),
        ],
    )
    def test_pairs(self, left, right, expected):
        assert loose_equals(left, right) is expected

    def test_objects_compare_by_identity(self):
        data = {"a": 1}
        assert loose_equals(data, data)
        assert not loose_equals({"a": 1}, {"a": 1})


class TestHelpers:
    def test_parse_int(self):
        assert parse_int("200") == 200
        assert parse_int("  404 Not Found") == 404
        assert parse_int("-1") == -1
        assert parse_int("abc") is None
        assert parse_int(None) is None

    def test_to_number(self):
        assert to_number(" 12 ") == 12.0
        assert to_number("") == 0.0
        assert to_number("Infinity") == float("inf")

    def test_default_status_rule(self):
        rule = default_status_rule("abc")
        assert rule.id == "default-abc"
        assert rule.field == "status"
        assert rule.expected_value == "200"

    def test_summarize(self):
        rules = evaluate(
            _response(200),
            [ValidationRule(type="status", expected_value="200"), ValidationRule(type="status", expected_value="201")],
        )
        assert summarize(rules) == (1, 2)
