from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "SCHEMA_EXPLORER_HOME"
CONFIG_FILENAME = "config.yml"


def default_support_dir() -> Path:
    env = os.environ.get(HOME_ENV_VAR)
    if env and env.strip():
        return Path(env.strip()).expanduser()
    return Path.home() / ".schema-explorer"


class AppConfig(BaseModel):
    support_dir: Path = Field(default_factory=default_support_dir)
    connect_timeout: int = Field(default=10, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="WARNING")

    model_config = {"extra": "allow"}

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


def load_app_config(support_dir: Optional[str] = None) -> AppConfig:
    base = Path(support_dir).expanduser() if support_dir else default_support_dir()
    p = base / CONFIG_FILENAME
    if not p.exists():
        return AppConfig(support_dir=base)
    try:
        cfg_raw = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring unreadable config {p}: {e}")
        return AppConfig(support_dir=base)
    if not isinstance(cfg_raw, dict):
        return AppConfig(support_dir=base)
    # the directory the file was found in wins over a support_dir key inside it
    cfg_raw["support_dir"] = base
    try:
        return AppConfig(**cfg_raw)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid config {p}: {e}")
        return AppConfig(support_dir=base)
