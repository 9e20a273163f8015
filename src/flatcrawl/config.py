"""flatcrawl configuration loader.

Sources come from ``config.json`` (a mapping of source name to source
spec); everything else comes from environment variables:

  CSV_PATH          table location (default ./urls.csv)
  GITHUB_TOKEN      token for gist sync
  GIST_ID           existing gist to update (a new one is created otherwise)
  GIST_DESCRIPTION  description for a created gist
  GIST_FILENAME     file name of the table inside the gist
  PORT              review server port (default 3000)
  FLATCRAWL_CONFIG  alternative path to config.json

The loaded ``AppConfig`` is passed explicitly to whatever needs it.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .validation import is_valid_url

DEFAULT_CONFIG_NAME = "config.json"
DEFAULT_CSV_NAME = "urls.csv"
DEFAULT_PORT = 3000
DEFAULT_GIST_DESCRIPTION = "FlatCrawl URL Database"
DEFAULT_GIST_FILENAME = "urls.csv"


class NormalizationRule(BaseModel):
    """How URLs of one source are normalized before comparison."""

    model_config = ConfigDict(populate_by_name=True)

    remove_params: list[str] = Field(default_factory=list, alias="removeParams")


class SourceSpec(BaseModel):
    """Static configuration of one source (config.json entry)."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    command: str = Field(description="Browser-side script returning an array of URLs")
    normalization: NormalizationRule = Field(default_factory=NormalizationRule)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value or not is_valid_url(value):
            raise ValueError(f"invalid URL {value!r}")
        return value

    @field_validator("command")
    @classmethod
    def _check_command(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("extraction command must not be empty")
        return value

    @property
    def normalization_params(self) -> list[str]:
        # Ordered, without repeats.
        return list(dict.fromkeys(self.normalization.remove_params))


class GistConfig(BaseModel):
    token: str = ""
    gist_id: Optional[str] = None
    description: str = DEFAULT_GIST_DESCRIPTION
    filename: str = DEFAULT_GIST_FILENAME


class ServerConfig(BaseModel):
    port: int = DEFAULT_PORT


class AppConfig(BaseModel):
    csv_path: Path
    sources: dict[str, SourceSpec]
    gist: GistConfig = Field(default_factory=GistConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "value"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def load_sources(config_path: Path) -> dict[str, SourceSpec]:
    """Load and validate the source mapping from ``config_path``.

    Raises:
        ConfigurationError: the file is missing, is not a JSON object,
            is empty, or contains an invalid source.
    """
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError("Data configuration must be a JSON object")
    if not raw:
        raise ConfigurationError("No data sources configured")

    sources: dict[str, SourceSpec] = {}
    for name, spec in raw.items():
        if not name.strip():
            raise ConfigurationError("Source names must not be empty")
        try:
            sources[name] = SourceSpec.model_validate(spec)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration for source {name!r}: {_validation_message(e)}"
            ) from e
    return sources


def _validate_gist(gist: GistConfig) -> None:
    if gist.gist_id and not gist.token:
        raise ConfigurationError("GITHUB_TOKEN is required when GIST_ID is set")
    if not gist.description.strip():
        raise ConfigurationError("Gist description must not be empty")
    if not gist.filename.strip():
        raise ConfigurationError("Gist filename must not be empty")


def _parse_port(value: Optional[str]) -> int:
    if value is None or value == "":
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid server port: {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"Invalid server port: {port}")
    return port


def load_config(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> AppConfig:
    """Build the application config from config.json and the environment.

    Args:
        config_path: Explicit config.json path (else FLATCRAWL_CONFIG, else
            ./config.json).
        env: Environment mapping (defaults to ``os.environ``).
        cwd: Base directory for default paths (defaults to the process cwd).
    """
    env = os.environ if env is None else env
    base = Path.cwd() if cwd is None else cwd

    if config_path is None:
        config_path = Path(env.get("FLATCRAWL_CONFIG") or base / DEFAULT_CONFIG_NAME)
    sources = load_sources(Path(config_path))

    gist = GistConfig(
        token=env.get("GITHUB_TOKEN", ""),
        gist_id=env.get("GIST_ID") or None,
        description=env.get("GIST_DESCRIPTION", DEFAULT_GIST_DESCRIPTION),
        filename=env.get("GIST_FILENAME", DEFAULT_GIST_FILENAME),
    )
    _validate_gist(gist)

    return AppConfig(
        csv_path=Path(env.get("CSV_PATH") or base / DEFAULT_CSV_NAME),
        sources=sources,
        gist=gist,
        server=ServerConfig(port=_parse_port(env.get("PORT"))),
    )


def get_source_spec(config: AppConfig, name: str) -> SourceSpec:
    """Return the spec for source ``name``."""
    try:
        return config.sources[name]
    except KeyError:
        known = ", ".join(config.sources) or "(none)"
        raise ConfigurationError(f"Source {name!r} not found in configuration (known: {known})") from None
