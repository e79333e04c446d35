"""Auto-detect the format of an import file."""

import json
from pathlib import Path

import yaml

from api_tester.errors import UnsupportedFormatError

FORMATS = ("collection", "postman", "swagger")


def detect_format(file_path: Path) -> str:
    """Detect the format of an import file.

    Returns: 'collection', 'swagger' or 'postman'.
    """
    text = file_path.read_text(encoding="utf-8")

    # Try YAML/JSON parsing
    data = None
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        # Try JSON specifically (for files not parseable as YAML)
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            pass

    fmt = format_of(data)
    if fmt is None:
        raise UnsupportedFormatError(
            "Not a collection, Postman or OpenAPI document", source=str(file_path)
        )
    return fmt


def format_of(data) -> str | None:
    if not isinstance(data, dict):
        return None
    if "openapi" in data or "swagger" in data:
        return "swagger"
    info = data.get("info")
    if isinstance(info, dict) and ("_postman_id" in info or "postman" in str(info.get("schema", ""))):
        return "postman"
    if isinstance(data.get("endpoints"), list):
        return "collection"
    if isinstance(data.get("item"), list):
        return "postman"
    return None
