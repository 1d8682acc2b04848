"""
실행 설정. 환경 변수 (있으면 .env 파일 포함)에서 읽음
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///downloads.db"
    database_echo: bool = False
    download_dir: str = "downloads"
    worker_concurrency: int = 2
    processing_timeout_seconds: float = 300.0
    sweep_interval_seconds: float = 30.0
    simulated_delay_scale: float = 0.1
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", Settings.database_url),
        database_echo=_env_bool("DATABASE_ECHO"),
        download_dir=os.getenv("DOWNLOAD_DIR", Settings.download_dir),
        worker_concurrency=int(os.getenv("WORKER_CONCURRENCY", Settings.worker_concurrency)),
        processing_timeout_seconds=float(
            os.getenv("PROCESSING_TIMEOUT_SECONDS", Settings.processing_timeout_seconds)
        ),
        sweep_interval_seconds=float(os.getenv("SWEEP_INTERVAL_SECONDS", Settings.sweep_interval_seconds)),
        simulated_delay_scale=float(os.getenv("SIMULATED_DELAY_SCALE", Settings.simulated_delay_scale)),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level).upper(),
    )
