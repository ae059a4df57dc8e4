from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import uuid4


class Book(SQLModel, table=True):
    __tablename__ = "books"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    title: str
    description: str

    price: Decimal = Field(max_digits=10, decimal_places=2)

    cover_image: str
    download_url: str
    category: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
