from api_tester.naming import identifier, normalize, pascal_case, python_attribute, snake_case, unique


class TestIdentifier:
    def test_normalize(self):
        assert normalize("POST /api/users/{id}") == "post_api_users_id"
        assert normalize("--Hello  World--") == "hello_world"

    def test_leading_digit(self):
        assert identifier("2fa check") == "endpoint_2fa_check"

    def test_empty(self):
        assert identifier("///") == "endpoint"


class TestCase:
    def test_snake_case(self):
        assert snake_case("firstName") == "first_name"
        assert snake_case("UsersResponse") == "users_response"

    def test_pascal_case(self):
        assert pascal_case("post_api_users") == "PostApiUsers"
        assert pascal_case("userId") == "UserId"


class TestPythonAttribute:
    def test_keywords_and_model_members(self):
        assert python_attribute("from") == "from_"
        assert python_attribute("schema") == "schema_"
        assert python_attribute("model_name") == "field_model_name"

    def test_empty_key(self):
        assert python_attribute("$") == "field"


class TestUnique:
    def test_suffixes(self):
        taken: set[str] = set()
        assert [unique("a", taken) for _ in range(3)] == ["a", "a_2", "a_3"]

    def test_separator(self):
        taken = {"Item"}
        assert unique("Item", taken, separator="") == "Item2"
