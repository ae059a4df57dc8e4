from typing import List

from fastapi import APIRouter, Depends

from app.dependencies.services import get_storage
from app.schemas.book_schemas import BookResponse
from app.storage.base import LedgerStore

router = APIRouter()


@router.get("", response_model=List[BookResponse])
def list_books(store: LedgerStore = Depends(get_storage)):
    return store.get_books()
