from api_tester.values import extract, field_paths, filter_values


def _by_value(values):
    return {v.value: v for v in values}


class TestExtract:
    def test_scenario_nested_user(self):
        values = extract({"user": {"id": 1, "tags": ["a", "a", "b"]}})
        found = _by_value(values)
        assert found["a"].count == 2
        assert found["a"].path == "user.tags[0]"
        assert found["b"].count == 1
        assert found["b"].path == "user.tags[2]"
        assert found["1"].count == 1
        assert found["1"].type == "number"
        assert [v.type for v in values] == ["string", "string", "number"]

    def test_deterministic(self):
        data = {"b": "x", "a": [True, 2, "x", {"c": 2.0}], "d": None}
        assert extract(data) == extract(data)

    def test_dedup_by_string_form(self):
        values = extract({"a": 1, "b": 1.0, "c": "1"})
        found = _by_value(values)
        assert len(values) == 1
        assert found["1"].count == 3
        assert found["1"].path == "a"
        assert found["1"].type == "number"

    def test_counts_every_occurrence(self):
        data = {"x": "a", "y": {"z": "a"}, "w": ["a"]}
        assert _by_value(extract(data))["a"].count == 3

    def test_nulls_and_indices_skipped(self):
        values = extract({"a": None, "b": [None, None]})
        assert values == []

    def test_sort_order(self):
        values = extract({"t": True, "n": 10, "m": 9, "s": "b", "r": "a", "f": False})
        assert [(v.type, v.value) for v in values] == [
            ("string", "a"),
            ("string", "b"),
            ("number", "10"),
            ("number", "9"),
            ("boolean", "false"),
            ("boolean", "true"),
        ]

    def test_bool_is_not_a_number(self):
        assert extract({"flag": True})[0].type == "boolean"

    def test_primitive_root(self):
        values = extract("hello")
        assert len(values) == 1
        assert values[0].path == ""
        assert values[0].value == "hello"

    def test_list_root(self):
        paths = [v.path for v in extract([{"id": "x"}])]
        assert paths == ["[0].id"]


class TestFilterValues:
    def test_matches_value_or_path_case_insensitive(self):
        values = extract({"user": {"name": "Jane", "city": "Oslo"}})
        assert [v.value for v in filter_values(values, "JANE")] == ["Jane"]
        assert [v.value for v in filter_values(values, "city")] == ["Oslo"]

    def test_empty_term_returns_all(self):
        values = extract({"a": "x", "b": "y"})
        assert filter_values(values, "") == values


class TestFieldPaths:
    def test_nested_objects_only(self):
        data = {"user": {"id": 1, "address": {"city": "Oslo"}}, "items": [{"id": 2}]}
        assert field_paths(data) == ["user", "user.id", "user.address", "user.address.city", "items"]

    def test_non_object_root(self):
        assert field_paths([1, 2]) == []
