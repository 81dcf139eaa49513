from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Tuple

from pydantic import BaseModel, Field

from gene_guidance.constants import (
    APP_SLUG,
    CONFIG_FILENAME,
    DATA_DIR_ENV,
    DB_FILENAME,
    DEFAULT_FETCH_WORKERS,
)


class AppSettings(BaseModel):
    data_dir: str
    fetch_workers: int = Field(default=DEFAULT_FETCH_WORKERS, ge=1)
    log_level: str = "INFO"


def get_config_dir() -> Path:
    return Path.home() / f".{APP_SLUG}"


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILENAME


def default_data_dir() -> Path:
    return get_config_dir() / "data"


def resolve_data_dir(settings: AppSettings) -> Path:
    env_value = os.environ.get(DATA_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()
    return Path(settings.data_dir).expanduser().resolve()


def resolve_db_path(settings: AppSettings) -> Path:
    return resolve_data_dir(settings) / DB_FILENAME


def load_settings() -> Tuple[AppSettings, bool]:
    config_path = get_config_path()
    if config_path.exists():
        data = json.loads(config_path.read_text())
        settings = AppSettings(**data)
        return settings, False

    settings = AppSettings(data_dir=str(default_data_dir()))
    return settings, True


def save_settings(settings: AppSettings) -> None:
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = get_config_path()
    config_path.write_text(settings.model_dump_json(indent=2))
