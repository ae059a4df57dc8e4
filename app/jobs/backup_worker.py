import json
import logging
import threading
from datetime import timedelta
from typing import Callable, Dict, Any

from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool

from app.services.backup_queue import BackupQueue

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 3600


def backoff_seconds(attempts: int) -> int:
    return min(MAX_BACKOFF_SECONDS, 2 ** attempts)


def execute_statement(conn: str, sql: str, params: Dict[str, Any]) -> None:
    """Replay one statement on a short-lived connection to the target."""
    engine = create_engine(conn, poolclass=NullPool)
    try:
        with engine.begin() as connection:
            connection.execute(text(sql), params)
    finally:
        engine.dispose()


class BackupWorker:
    def __init__(
        self,
        queue: BackupQueue,
        executor: Callable[[str, str, Dict[str, Any]], None] = execute_statement,
        interval: float = 3.0,
        batch_size: int = 5,
        stale_after_seconds: int = 300,
    ):
        self.queue = queue
        self.executor = executor
        self.interval = interval
        self.batch_size = batch_size
        self.stale_after_seconds = stale_after_seconds
        self._stop = threading.Event()
        self._thread = None

    def run_once(self) -> int:
        """One polling pass. Returns how many tasks were attempted."""
        tasks = self.queue.pick_due(limit=self.batch_size)
        attempted = 0

        for task in tasks:
            if not self.queue.mark_in_progress(task.id):
                continue
            attempted += 1

            params = json.loads(task.params) if task.params else {}
            try:
                self.executor(task.conn, task.sql, params)
            except Exception as e:
                attempts = (task.attempts or 0) + 1
                delay = backoff_seconds(attempts)
                self.queue.mark_failed(
                    task.id,
                    attempts=attempts,
                    error=str(e),
                    next_try_at=self.queue.clock() + timedelta(seconds=delay),
                )
                logger.warning(
                    f"Backup task {task.id} failed (attempt {attempts}), retry in {delay}s: {e}"
                )
                continue

            self.queue.mark_done(task.id)

        return attempted

    def _loop(self):
        while True:
            try:
                self.run_once()
            except Exception:
                logger.exception("BackupQueue worker error")

            if self._stop.wait(self.interval):
                return

    def start(self):
        if self._thread and self._thread.is_alive():
            return

        self.queue.recover_stale(self.stale_after_seconds)
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="backup-worker", daemon=True)
        self._thread.start()
        logger.info(f"Backup worker started (every {self.interval}s, batch {self.batch_size})")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
