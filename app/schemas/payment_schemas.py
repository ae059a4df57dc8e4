from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel


class CardDetails(CamelModel):
    number: str = Field(..., min_length=12, max_length=23)
    expiry_month: int
    expiry_year: int
    security_code: Optional[str] = None


class ChargeRequest(BaseModel):
    amount: Decimal
    currency: str = "USD"
    email: str
    payment_method: str
    order_ref: str
    card: Optional[CardDetails] = None


class ChargeResult(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ChargeResult":
        return cls(success=False, error=error)
