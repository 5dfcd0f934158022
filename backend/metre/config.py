"""Métré application configuration.

Settings come from three places, later ones winning:
  * built-in defaults on the pydantic models below
  * metre.settings.yaml (optional, path overridable with METRE_SETTINGS)
  * process environment (a local .env file is loaded first)

Recognised environment variables:
  OPENAI_API_KEY, HOST, PORT, UPLOADS_DIR, LOG_LEVEL, METRE_SETTINGS
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("metre.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class OpenAISettings(BaseModel):
    """Credentials and model knobs for the speech and completion calls."""
    api_key:                       Optional[str] = None
    transcription_model:           str           = "whisper-1"
    analysis_model:                str           = "gpt-5.2"
    transcription_timeout_seconds: float         = 120.0
    analysis_timeout_seconds:      float         = 180.0

    @field_validator("transcription_timeout_seconds", "analysis_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value


class UploadSettings(BaseModel):
    upload_dir: str = "uploads"
    field_name: str = "audio"


class CatalogSettings(BaseModel):
    max_chars: int = 200_000


class LoggingSettings(BaseModel):
    level: str = "info"


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    openai:  OpenAISettings  = Field(default_factory=OpenAISettings)
    uploads: UploadSettings  = Field(default_factory=UploadSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------

# env var -> (section, key)
_ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("openai", "api_key"),
    "HOST":           ("server", "host"),
    "PORT":           ("server", "port"),
    "UPLOADS_DIR":    ("uploads", "upload_dir"),
    "LOG_LEVEL":      ("logging", "level"),
}


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][key] = value
    return data


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Load settings from YAML and the environment into an *AppSettings*.

    Args:
        settings_path: YAML file to read. Defaults to ``METRE_SETTINGS`` or
            ``metre.settings.yaml`` in the working directory.
        environ: Mapping used for overrides. Defaults to ``os.environ`` after
            loading ``.env``.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    if settings_path is None:
        settings_path = Path(environ.get("METRE_SETTINGS") or SETTINGS_FILE)

    data = _apply_env_overrides(_load_yaml(Path(settings_path)), environ)
    settings = AppSettings(**data)

    if not settings.openai.api_key:
        logger.warning("OPENAI_API_KEY is not set; upstream calls will fail")

    logger.info(
        "Settings loaded (server=%s:%s, uploads=%s, analysis_model=%s)",
        settings.server.host,
        settings.server.port,
        settings.uploads.upload_dir,
        settings.openai.analysis_model,
    )
    return settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppSettings]) -> None:
    """Replace (or clear) the process-wide settings."""
    global _config
    _config = config
