"""Identifier helpers shared by schema inference and code generation."""

import keyword
import re

_NON_ALNUM = re.compile(r"[^0-9a-zA-Z]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# names that would shadow BaseModel members or builtins used in type hints
_RESERVED = {
    "copy", "dict", "json", "schema", "construct", "validate", "fields", "parse_obj", "parse_raw",
    "str", "int", "float", "bool", "list",
}


def normalize(text: str) -> str:
    """Lower-case ``text``, collapse non-alphanumeric runs to ``_`` and strip them at the ends."""
    return _NON_ALNUM.sub("_", text.lower()).strip("_")


def identifier(text: str, fallback: str = "endpoint") -> str:
    """A valid lower-case Python identifier derived from ``text``."""
    ident = normalize(text)
    if not ident:
        return fallback
    if ident[0].isdigit():
        ident = f"{fallback}_{ident}"
    return ident


def snake_case(text: str) -> str:
    return normalize(_CAMEL_BOUNDARY.sub("_", text))


def pascal_case(text: str) -> str:
    """``post_api_users`` -> ``PostApiUsers``; camelCase input keeps its word breaks."""
    return "".join(part[:1].upper() + part[1:] for part in snake_case(text).split("_") if part)


def python_attribute(key: str) -> str:
    """A snake_case attribute name for a JSON key, safe to use on a pydantic model."""
    name = snake_case(key) or "field"
    if name[0].isdigit() or name.startswith("model_"):
        name = f"field_{name}"
    if keyword.iskeyword(name) or name in _RESERVED:
        name += "_"
    return name


def unique(name: str, taken: set[str], separator: str = "_") -> str:
    """Return ``name`` or ``name<sep>2``, ``name<sep>3``… whichever is not in ``taken``; records it."""
    candidate = name
    counter = 2
    while candidate in taken:
        candidate = f"{name}{separator}{counter}"
        counter += 1
    taken.add(candidate)
    return candidate
