"""Settings loaded from a YAML key-value file with environment overrides."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storeparser.antibot.user_agent import DEFAULT_ACCEPT_LANGUAGE, DEFAULT_ORIGIN
from storeparser.errors import ConfigError

LOGGER = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_DIR / "config/app.yaml"
CONFIG_ENV_VAR = "STOREPARSER_CONFIG"

# environment variable -> (section, field)
ENV_OVERRIDES = {
    "STOREPARSER_HTML_URL": ("html", "url"),
    "STOREPARSER_HTML_AGENT": ("html", "http_agent"),
    "STOREPARSER_API_URL": ("api", "url"),
    "STOREPARSER_API_AGENT": ("api", "http_agent"),
    "STOREPARSER_PROXY_FILE": ("proxies", "file"),
}

_STRICT = ConfigDict(extra="forbid")


class HttpSettings(BaseModel):
    model_config = _STRICT

    retry_delay: float = Field(10.0, ge=0)
    timeout: float = Field(20.0, gt=0)
    origin: str = DEFAULT_ORIGIN
    referer: Optional[str] = None
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE


class SourceSettings(BaseModel):
    """Settings of one pipeline (HTML or API)."""

    model_config = _STRICT

    url: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)
    http_agent: Optional[str] = None
    max_attempts: int = Field(5, ge=1)
    use_proxy: bool = False


class HtmlSettings(SourceSettings):
    detail_max_attempts: int = Field(5, ge=1)
    workers: int = Field(1, ge=1)


class ProxySettings(BaseModel):
    model_config = _STRICT

    file: str = "config/http_proxies.txt"


class Settings(BaseModel):
    model_config = _STRICT

    html: HtmlSettings
    api: SourceSettings
    http: HttpSettings = Field(default_factory=HttpSettings)
    proxies: ProxySettings = Field(default_factory=ProxySettings)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def _to_sections(data: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Turn ``html.output.filename`` style keys into ``{"html": {"output_filename": ...}}``.

    Nested mappings and flat dotted keys may be mixed.
    """
    sections: Dict[str, Dict[str, Any]] = {}
    for dotted, value in _flatten(data).items():
        section, _, field = dotted.partition(".")
        if not field:
            raise ConfigError(f"setting '{dotted}' must belong to a section (e.g. html.url)")
        field = field.replace(".", "_").replace("-", "_")
        sections.setdefault(section, {})[field] = value
    return sections


def load_settings(
    path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Read settings file and apply environment overrides.

    Parameters
    ----------
    path : str or Path, optional
        Settings file; defaults to ``$STOREPARSER_CONFIG`` or ``config/app.yaml``
    environ : mapping, optional
        Environment to read overrides from (defaults to ``os.environ``)

    Raises
    ------
    ConfigError
        If the file is unreadable, not a mapping, or fails validation
    """
    environ = os.environ if environ is None else environ
    path = Path(path or environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"settings file {path} is not valid YAML: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"settings file {path} must contain a mapping")

    sections = _to_sections(raw)
    for env_var, (section, field) in ENV_OVERRIDES.items():
        if value := environ.get(env_var):
            sections.setdefault(section, {})[field] = value

    try:
        settings = Settings.model_validate(sections)
    except ValidationError as exc:
        raise ConfigError(f"invalid settings in {path}: {exc}") from exc

    LOGGER.debug("Loaded settings from %s", path)
    return settings
