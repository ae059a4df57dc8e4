from datetime import datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL format for cover image or download URL")
    return value.strip()


class BookCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    cover_image: str
    download_url: str
    category: str

    @field_validator("cover_image", "download_url")
    @classmethod
    def well_formed_url(cls, value):
        return _check_url(value)


class BookUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    cover_image: Optional[str] = None
    download_url: Optional[str] = None
    category: Optional[str] = None

    @field_validator("cover_image", "download_url")
    @classmethod
    def well_formed_url(cls, value):
        return _check_url(value)


class BookResponse(CamelModel):
    id: str
    title: str
    description: str
    price: Decimal
    cover_image: str
    download_url: str
    category: str
    created_at: datetime
