from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel


class AdminCredentials(BaseModel):
    username: str = ""
    password: str = ""


class AdminOut(BaseModel):
    id: str
    username: str


class LoginResponse(BaseModel):
    token: str
    admin: AdminOut


class SetupResponse(BaseModel):
    message: str
    admin: AdminOut


class WalletTransactionResponse(CamelModel):
    id: str
    type: str
    amount: Decimal
    status: str
    bank_account_info: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class WalletResponse(CamelModel):
    available_balance: Decimal
    pending_balance: Decimal
    transactions: List[WalletTransactionResponse]


class TransferRequest(CamelModel):
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)
    bank_account_info: str = ""


class TransferResponse(CamelModel):
    success: bool = True
    transaction: WalletTransactionResponse
