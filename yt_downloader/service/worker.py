import asyncio
import logging
from typing import Optional

from yt_downloader.service.lifecycle import DownloadLifecycle

logger = logging.getLogger(__name__)


class DownloadWorkerPool:
    """
    요청 핸들러는 작업 ID를 큐에 넣기만 하고
    실제 처리는 백그라운드 작업자들이 큐에서 꺼내 수행
    """

    def __init__(
        self,
        lifecycle: DownloadLifecycle,
        concurrency: int = 2,
        sweep_interval: Optional[float] = 30.0,
    ):
        self.lifecycle = lifecycle
        self.concurrency = max(1, concurrency)
        self.sweep_interval = sweep_interval
        self.queue: asyncio.Queue = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self):
        if self._tasks:
            return

        # 이벤트 루프마다 새 큐 (대기 중이던 작업은 시작 시 pending 재등록으로 복구)
        self.queue = asyncio.Queue()
        for n in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker(n), name=f"download-worker-{n}"))
        if self.sweep_interval:
            self._tasks.append(asyncio.create_task(self._sweeper(), name="download-sweeper"))

        logger.info(f"Started {self.concurrency} download worker(s)")

    def enqueue(self, download_id: int):
        self.queue.put_nowait(download_id)

    async def join(self):
        """큐에 들어간 작업이 모두 처리될 때까지 대기"""
        await self.queue.join()

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Stopped download workers")

    async def _worker(self, n: int):
        while True:
            download_id = await self.queue.get()
            try:
                await self.lifecycle.run(download_id)
            except Exception:
                # run()은 예외를 전파하지 않지만 작업자가 죽지 않도록 한 번 더 보호
                logger.exception(f"Worker {n} crashed on download {download_id}")
            finally:
                self.queue.task_done()

    async def _sweeper(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.lifecycle.expire_stale()
            except Exception:
                logger.exception("Stale download sweep failed")
