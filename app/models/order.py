from sqlmodel import SQLModel, Field
from datetime import datetime
from decimal import Decimal
from uuid import uuid4


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    customer_email: str
    total_amount: Decimal = Field(max_digits=10, decimal_places=2)

    status: str = Field(default="pending")  # pending | completed | refunded

    created_at: datetime = Field(default_factory=datetime.utcnow)
