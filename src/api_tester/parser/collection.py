"""Native collection, rules, response and results files.

Collections are YAML (or JSON, which YAML reads too) documents using the
camelCase field names of the data model. Results are written as JSON.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from api_tester.errors import InputParseError
from api_tester.models import CapturedResponse, Collection, ExecutionResult, ValidationRule


def parse_collection(file_path: Path) -> Collection:
    """Parse a native collection file."""
    data = _load(file_path)
    try:
        return Collection.model_validate(data)
    except ValidationError as e:
        raise InputParseError(f"Invalid collection: {e}", source=str(file_path)) from e


def dump_collection(collection: Collection) -> str:
    data = collection.model_dump(by_alias=True, mode="json", exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def save_collection(collection: Collection, file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(dump_collection(collection), encoding="utf-8")


def parse_rules(file_path: Path) -> list[ValidationRule]:
    """Parse validation rules: a list, or a mapping with a ``validations`` or ``rules`` list."""
    data = _load(file_path)
    if isinstance(data, dict):
        data = data.get("validations", data.get("rules"))
    if not isinstance(data, list):
        raise InputParseError("Rules file must contain a list of rules", source=str(file_path))
    try:
        return [ValidationRule.model_validate(item) for item in data]
    except ValidationError as e:
        raise InputParseError(f"Invalid rule: {e}", source=str(file_path)) from e


def parse_response(file_path: Path) -> CapturedResponse:
    """Parse a saved response document ``{status, data, ...}``."""
    data = _load(file_path)
    try:
        return CapturedResponse.model_validate(data)
    except ValidationError as e:
        raise InputParseError(f"Invalid response document: {e}", source=str(file_path)) from e


def save_results(results: list[ExecutionResult], file_path: Path) -> None:
    data = [r.model_dump(by_alias=True, mode="json", exclude_none=True) for r in results]
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def load_results(file_path: Path) -> list[ExecutionResult]:
    data = _load(file_path)
    if not isinstance(data, list):
        raise InputParseError("Results file must contain a list", source=str(file_path))
    try:
        return [ExecutionResult.model_validate(item) for item in data]
    except ValidationError as e:
        raise InputParseError(f"Invalid execution result: {e}", source=str(file_path)) from e


def _load(file_path: Path) -> Any:
    text = file_path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InputParseError(f"Invalid YAML/JSON: {e}", source=str(file_path)) from e
