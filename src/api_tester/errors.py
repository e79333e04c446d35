"""Exception hierarchy shared by the importers, the relay client and the CLI."""


class ApiTesterError(Exception):
    """Base class for every error raised by api-tester."""


class InputParseError(ApiTesterError):
    """Malformed JSON or YAML input (request body, import file, schema text)."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class SchemaParseError(InputParseError):
    """Manually authored schema text is not valid JSON."""


class UnsupportedFormatError(InputParseError):
    """Import file is neither a collection, a Postman export nor an OpenAPI document."""


class RelayError(ApiTesterError):
    """The relay could not forward the request or reported a failure."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
