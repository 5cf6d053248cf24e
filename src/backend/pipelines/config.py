from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from common.compliance_engine.config import COVERAGE_PROFILES, DEFAULT_PROFILE


load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///compliance.db"
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class EngineConfig:
    database_url: str = DEFAULT_DATABASE_URL
    max_workers: int = DEFAULT_MAX_WORKERS
    profile: str = DEFAULT_PROFILE
    log_level: str = "INFO"
    fixtures_dir: Optional[Path] = None


def get_engine_config() -> EngineConfig:
    """
    Load engine configuration from environment variables.

    Reads:
      COMPLIANCE_DATABASE_URL, COMPLIANCE_MAX_WORKERS, COMPLIANCE_PROFILE,
      COMPLIANCE_LOG_LEVEL, COMPLIANCE_FIXTURES_DIR
    """
    fixtures_raw = os.getenv("COMPLIANCE_FIXTURES_DIR", "").strip()
    return EngineConfig(
        database_url=os.getenv("COMPLIANCE_DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL,
        max_workers=_parse_max_workers(os.getenv("COMPLIANCE_MAX_WORKERS", "")),
        profile=_parse_profile(os.getenv("COMPLIANCE_PROFILE", "")),
        log_level=_parse_log_level(os.getenv("COMPLIANCE_LOG_LEVEL", "")),
        fixtures_dir=Path(fixtures_raw).expanduser() if fixtures_raw else None,
    )


def _parse_max_workers(raw: str) -> int:
    raw = raw.strip()
    if not raw:
        return DEFAULT_MAX_WORKERS
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError("COMPLIANCE_MAX_WORKERS must be an integer.") from exc
    if value < 1:
        raise ValueError("COMPLIANCE_MAX_WORKERS must be at least 1.")
    return value


def _parse_profile(raw: str) -> str:
    profile = raw.strip().lower() or DEFAULT_PROFILE
    if profile not in COVERAGE_PROFILES:
        raise ValueError(
            f"COMPLIANCE_PROFILE must be one of: {', '.join(sorted(COVERAGE_PROFILES))}."
        )
    return profile


def _parse_log_level(raw: str) -> str:
    level = raw.strip().upper() or "INFO"
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError("COMPLIANCE_LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL.")
    return level
