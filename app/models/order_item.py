from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
from decimal import Decimal
from uuid import uuid4


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    # items live and die with their order
    order_id: str = Field(foreign_key="orders.id", ondelete="CASCADE", index=True)
    book_id: str = Field(foreign_key="books.id")

    quantity: int = Field(default=1, ge=1)
    # captured at order time, never re-read from the book
    price: Decimal = Field(max_digits=10, decimal_places=2)
