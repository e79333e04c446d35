"""Field extraction — enumerate the primitive values of a JSON document.

Used to offer expected values when authoring validation rules: every
distinct string, number and boolean found anywhere in a response, with the
path where it was first seen and how many times it occurs.
"""

from api_tester.models import ExtractedValue
from api_tester.paths import JsonValue, js_string

TYPE_ORDER = {"string": 0, "number": 1, "boolean": 2}


def extract(root: JsonValue) -> list[ExtractedValue]:
    """Collect every distinct primitive in ``root``, deduplicated by its string form.

    Lists are descended with ``[index]`` path suffixes, mappings with
    ``parent.key``. Nulls are skipped. The result is ordered by type
    (string, number, boolean) and then by value.
    """
    found: dict[str, ExtractedValue] = {}
    _walk(root, "", found)
    return sorted(found.values(), key=lambda item: (TYPE_ORDER[item.type], item.value))


def _walk(value: JsonValue, path: str, found: dict[str, ExtractedValue]) -> None:
    if isinstance(value, dict):
        for key, child in value.items():
            _walk(child, f"{path}.{key}" if path else key, found)
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _walk(item, f"{path}[{index}]", found)
    else:
        kind = _primitive_type(value)
        if kind is None:
            return
        text = js_string(value)
        if text in found:
            found[text].count += 1
        else:
            found[text] = ExtractedValue(value=text, path=path, type=kind)


def _primitive_type(value: JsonValue) -> str | None:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


def filter_values(values: list[ExtractedValue], term: str) -> list[ExtractedValue]:
    """Case-insensitive search over value and path."""
    if not term:
        return list(values)
    needle = term.lower()
    return [v for v in values if needle in v.value.lower() or needle in v.path.lower()]


def field_paths(root: JsonValue, prefix: str = "") -> list[str]:
    """Dotted paths of every object key, descending nested objects but not lists."""
    paths: list[str] = []
    if not isinstance(root, dict):
        return paths
    for key, child in root.items():
        current = f"{prefix}.{key}" if prefix else key
        paths.append(current)
        if isinstance(child, dict):
            paths.extend(field_paths(child, current))
    return paths
