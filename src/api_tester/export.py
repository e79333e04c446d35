"""Artifact export — lay generated files out in the package folder structure.

Feature files go to ``resources/features/``; step modules, services and model
stubs go to ``<base/package>/steps/``, ``/service/`` and ``/model/``. Every
Python package directory gets an empty ``__init__.py``.
"""

import logging
import zipfile
from pathlib import Path

from api_tester.models import GeneratedCode

logger = logging.getLogger(__name__)

FEATURES_DIR = "resources/features"


def layout(code: GeneratedCode, base_package: str) -> dict[str, str]:
    """Map archive paths to file contents, in a stable order."""
    package_dir = "/".join(part for part in base_package.split(".") if part)
    files: dict[str, str] = {}

    for f in code.feature_files:
        files[f"{FEATURES_DIR}/{f.name}"] = f.content

    categories = [
        ("steps", code.step_definitions),
        ("service", code.service_classes),
        ("model", code.data_model_stubs),
    ]
    used = [(sub, items) for sub, items in categories if items]
    if used:
        parts = package_dir.split("/")
        for depth in range(1, len(parts) + 1):
            files["/".join(parts[:depth]) + "/__init__.py"] = ""
    for sub, items in used:
        files[f"{package_dir}/{sub}/__init__.py"] = ""
        for f in items:
            files[f"{package_dir}/{sub}/{f.name}"] = f.content

    return files


def write_archive(code: GeneratedCode, base_package: str, target: Path) -> Path:
    """Write the bundle as a zip archive at ``target``."""
    target.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in layout(code, base_package).items():
            archive.writestr(name, content)
    logger.info("Wrote archive %s", target)
    return target


def write_tree(code: GeneratedCode, base_package: str, directory: Path, overwrite: bool = True) -> list[Path]:
    """Write the bundle under ``directory``.

    Returns the paths that were skipped because they already existed; with
    ``overwrite`` (the default) nothing is skipped.
    """
    skipped = []
    for name, content in layout(code, base_package).items():
        file_path = directory / name
        if file_path.exists() and not overwrite:
            logger.info("Keeping existing %s", file_path)
            skipped.append(file_path)
            continue
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    return skipped
