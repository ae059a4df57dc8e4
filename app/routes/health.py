from datetime import datetime

from fastapi import APIRouter, Depends

from app.dependencies.services import get_storage
from app.storage.base import LedgerStore

router = APIRouter()


@router.get("")
def health_check(store: LedgerStore = Depends(get_storage)):
    db_status = "ok" if store.ping() else "failed"

    return {
        "status": "ok",
        "database": db_status,
        "timestamp": datetime.utcnow().isoformat()
    }
