import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from yt_downloader.config import Settings, load_settings
from yt_downloader.controller import download_controller
from yt_downloader.database import create_engine, create_session_factory, create_tables
from yt_downloader.service.download_service import DownloadService
from yt_downloader.service.download_store import DownloadStore
from yt_downloader.service.lifecycle import DownloadLifecycle
from yt_downloader.service.providers import MediaProvider, SimulatedProvider
from yt_downloader.service.storage import ArtifactStorage, LocalArtifactStorage
from yt_downloader.service.worker import DownloadWorkerPool
from yt_downloader.utils.datetime_helper import utcnow

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[MediaProvider] = None,
    storage: Optional[ArtifactStorage] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    engine = create_engine(settings.database_url, echo=settings.database_echo)
    store = DownloadStore(create_session_factory(engine))
    lifecycle = DownloadLifecycle(
        store,
        provider or SimulatedProvider(random.Random(), delay_scale=settings.simulated_delay_scale),
        clock=clock,
        timeout_seconds=settings.processing_timeout_seconds,
    )
    pool = DownloadWorkerPool(
        lifecycle,
        concurrency=settings.worker_concurrency,
        sweep_interval=settings.sweep_interval_seconds,
    )
    service = DownloadService(
        store,
        pool,
        storage or LocalArtifactStorage(settings.download_dir),
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 시작 시 데이터베이스 테이블 생성
        Path(settings.download_dir).mkdir(parents=True, exist_ok=True)
        await create_tables(engine)

        pool.start()
        # 이전 실행에서 남은 작업 정리
        await lifecycle.expire_stale()
        await service.recover()
        yield
        # 종료 시 정리 작업
        await pool.stop()
        await engine.dispose()

    app = FastAPI(title="YouTube Downloader", lifespan=lifespan)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.include_router(download_controller.router)

    app.state.settings = settings
    app.state.download_store = store
    app.state.download_lifecycle = lifecycle
    app.state.download_workers = pool
    app.state.download_service = service
    return app


app = create_app()
