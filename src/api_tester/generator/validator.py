"""Validates generated artifacts for syntax and structural correctness."""

import ast
import re

from api_tester.models import GeneratedCode

_FEATURE_LINE = re.compile(r"^\s*Feature:", re.MULTILINE)
_SCENARIO_LINE = re.compile(r"^\s*Scenario( Outline)?:", re.MULTILINE)


def validate_python(files: dict[str, str]) -> dict[str, str]:
    """Check Python files for syntax errors.

    Returns dict of {filename: error_message} for files with errors.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".py"):
            continue
        if not content.strip():
            continue
        try:
            ast.parse(content, filename=filename)
        except SyntaxError as e:
            errors[filename] = f"SyntaxError: {e.msg} (line {e.lineno})"
    return errors


def validate_features(files: dict[str, str]) -> dict[str, str]:
    """Check Gherkin files for a Feature line and at least one scenario.

    Returns dict of {filename: error_message} for files with errors.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".feature"):
            continue
        if not _FEATURE_LINE.search(content):
            errors[filename] = "FeatureError: missing 'Feature:' line"
        elif not _SCENARIO_LINE.search(content):
            errors[filename] = "FeatureError: no scenario"
    return errors


def validate_generated(code: GeneratedCode) -> dict[str, str]:
    """Run all checks over every category of a generated bundle."""
    files = {f.name: f.content for f in code.all_files()}
    errors = {}
    errors.update(validate_python(files))
    errors.update(validate_features(files))
    return errors
