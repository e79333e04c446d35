"""Settings and logging setup.

Values are resolved environment variable first, then the ``api_tester``
section of a YAML config file, then the built-in default.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from api_tester.errors import InputParseError

CONFIG_ENV = "API_TESTER_CONFIG"
DEFAULT_CONFIG_FILE = "api-tester.yaml"
CONFIG_SECTION = "api_tester"
ENV_PREFIX = "API_TESTER_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    relay_url: str = "http://localhost:3001"
    timeout: float = 60
    base_package: str = "api_tests"
    default_validation: bool = True
    only_successful: bool = True

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings):
        # config file values arrive as init arguments and rank below the environment
        return env_settings, init_settings

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from the config file and the environment.

        An explicitly named config file must exist; the default one is optional.
        """
        values: dict[str, Any] = {}
        path = config_file or Path(os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_FILE))
        explicit = config_file is not None or CONFIG_ENV in os.environ
        if path.is_file():
            values = _read_section(path)
        elif explicit:
            raise InputParseError(f"Config file not found: {path}", source=str(path))

        try:
            return cls(**values)
        except ValidationError as e:
            raise InputParseError(f"Invalid settings: {e}", source=str(path)) from e


def _read_section(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise InputParseError(f"Invalid YAML in config file: {e}", source=str(path)) from e
    section = data.get(CONFIG_SECTION, {}) if isinstance(data, dict) else {}
    return section if isinstance(section, dict) else {}


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
