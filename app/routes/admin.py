import logging

from fastapi import APIRouter, Depends
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from app.dependencies.services import get_backup_queue, get_storage
from app.exceptions import StoreError
from app.storage.base import LedgerStore

logger = logging.getLogger(__name__)

router = APIRouter()

BACKUP_STATUS_LIMIT = 50


def _mask(conn: str) -> str:
    try:
        return make_url(conn).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable>"


@router.get("/db-status")
def db_status(store: LedgerStore = Depends(get_storage)):
    if not store.ping():
        return {"connected": False, "error": "Database unreachable"}

    try:
        return {
            "connected": True,
            "backend": type(store).__name__,
            "counts": {
                "books": len(store.get_books()),
                "orders": len(store.get_orders()),
                "transactions": len(store.get_transactions()),
            },
        }
    except StoreError as e:
        logger.warning(f"Database status check failed: {e}")
        return {"connected": False, "error": str(e)}


@router.get("/backup-status")
def backup_status(
    store: LedgerStore = Depends(get_storage),
    queue=Depends(get_backup_queue),
):
    if queue is None:
        return {"enabled": False, "tasks": []}

    tasks = queue.list(limit=BACKUP_STATUS_LIMIT)
    for task in tasks:
        task["conn"] = _mask(task["conn"])

    status = store.backup_status() if hasattr(store, "backup_status") else {}
    return {"enabled": True, **status, "tasks": tasks}
