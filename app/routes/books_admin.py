import logging

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies.services import get_storage
from app.models.book import Book
from app.schemas.book_schemas import BookCreate, BookResponse, BookUpdate
from app.storage.base import LedgerStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=BookResponse)
def create_book(payload: BookCreate, store: LedgerStore = Depends(get_storage)):
    book = store.create_book(Book(**payload.model_dump()))
    logger.info(f"Book created: {book.id} ({book.title})")
    return book


@router.put("/{book_id}", response_model=BookResponse)
def update_book(book_id: str, payload: BookUpdate, store: LedgerStore = Depends(get_storage)):
    book = store.update_book(book_id, payload.model_dump(exclude_unset=True))
    if not book:
        raise HTTPException(404, "Book not found")
    return book


@router.delete("/{book_id}")
def delete_book(book_id: str, store: LedgerStore = Depends(get_storage)):
    if not store.get_book(book_id):
        raise HTTPException(404, "Book not found")

    store.delete_book(book_id)
    logger.info(f"Book deleted: {book_id}")
    return {"success": True}
