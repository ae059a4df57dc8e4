from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field

from app.schemas.base import CamelModel
from app.schemas.payment_schemas import CardDetails

# client-claimed figures are only compared against store prices
MAX_QUANTITY = 10000
MAX_AMOUNT = Decimal("100000000")


class CartLine(CamelModel):
    book_id: str
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    price: Decimal = Field(..., ge=0, lt=MAX_AMOUNT)


class CreateSessionRequest(CamelModel):
    customer_email: EmailStr
    payment_method: str
    amount: Decimal = Field(..., ge=0, lt=MAX_AMOUNT)
    currency: str = "USD"
    items: List[CartLine] = Field(..., min_length=1)


class CreateSessionResponse(CamelModel):
    success: bool = True
    session_id: str
    total_amount: Decimal


class CreateOrderRequest(CamelModel):
    customer_email: EmailStr
    payment_method: str
    session_id: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, lt=MAX_AMOUNT)
    currency: str = "USD"
    items: List[CartLine] = Field(..., min_length=1)


class VisaChargeRequest(CamelModel):
    card: CardDetails
    customer_email: EmailStr
    amount: Optional[Decimal] = Field(default=None, ge=0, lt=MAX_AMOUNT)
    currency: str = "USD"
    items: List[CartLine] = Field(..., min_length=1)


class HostedSessionRequest(CamelModel):
    customer_email: EmailStr
    amount: Decimal = Field(..., ge=0, lt=MAX_AMOUNT)
    currency: str = "USD"
    items: List[CartLine] = Field(..., min_length=1)


class HostedCompleteRequest(CamelModel):
    session_id: str
    success: bool
