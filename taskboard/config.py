"""Settings loaded from TASKBOARD_* environment variables (+ optional .env)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKBOARD"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Server ----
    database_url: str
    host: str
    port: int

    # ---- Client ----
    api_url: str
    http_timeout: float

    # ---- Logging ----
    log_level: str
    log_dir: Optional[Path]

    # ---- Seed data ----
    default_projects: List[str]
    default_labels: List[str]


def load_settings() -> Settings:
    return Settings(
        database_url=_env(_k("DATABASE_URL"), "sqlite:///./tasks.db"),
        host=_env(_k("HOST"), "127.0.0.1"),
        port=_env_int(_k("PORT"), 8000),
        api_url=_env(_k("API_URL"), "http://127.0.0.1:8000").rstrip("/"),
        http_timeout=_env_float(_k("HTTP_TIMEOUT"), 10.0),
        log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
        log_dir=_env_path(_k("LOG_DIR")),
        default_projects=_env_list(_k("DEFAULT_PROJECTS"), ["Work", "Personal", "Shopping"]),
        default_labels=_env_list(
            _k("DEFAULT_LABELS"), ["Important", "Urgent", "Home", "Email", "Meeting"]
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
