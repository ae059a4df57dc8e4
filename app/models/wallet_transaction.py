from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import uuid4


class WalletTransaction(SQLModel, table=True):
    """Append-only seller ledger entry. Balance is folded from these rows."""

    __tablename__ = "wallet_transactions"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    type: str  # payment_received | transfer_to_bank | refund_issued
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default="pending")  # pending | completed | failed

    bank_account_info: Optional[str] = None
    description: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
