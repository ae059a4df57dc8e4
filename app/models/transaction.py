from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import uuid4


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    order_id: str = Field(foreign_key="orders.id", index=True)

    amount: Decimal = Field(max_digits=10, decimal_places=2)
    payment_method: str  # mastercard | visa | prepaid | google_pay | apple_pay
    status: str = Field(default="pending")  # pending | completed | failed | refunded

    # gateway reference
    payment_intent_id: Optional[str] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
