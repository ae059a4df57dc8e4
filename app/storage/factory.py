import logging
from typing import Optional

from app.config import Settings
from app.database import engine_for
from app.services.backup_queue import BackupQueue
from app.storage.base import LedgerStore
from app.storage.memory import MemoryStorage
from app.storage.replicated import ReplicatedStorage
from app.storage.sql import SQLStorage, SqliteStorage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings, queue: Optional[BackupQueue] = None) -> LedgerStore:
    """
    Pick the ledger backend named by the settings. When backup targets are
    configured and a queue is given, writes are mirrored through it.
    """
    if settings.storage_backend == "memory":
        store: LedgerStore = MemoryStorage()
    elif settings.storage_backend == "sqlite":
        store = SqliteStorage(settings.sqlite_path)
    else:
        # Run DB creation ONLY in local, migrations own the schema elsewhere
        store = SQLStorage(engine_for(settings), create_tables=settings.env == "local")

    logger.info(f"Ledger store: {type(store).__name__}")

    if queue is not None and settings.backup_database_urls:
        logger.info(f"Mirroring writes to {len(settings.backup_database_urls)} backup database(s)")
        return ReplicatedStorage(store, queue, settings.backup_database_urls)

    return store
