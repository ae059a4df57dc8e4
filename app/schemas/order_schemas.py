from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.schemas.base import CamelModel


class OrderResponse(CamelModel):
    id: str
    customer_email: str
    total_amount: Decimal
    status: str
    created_at: datetime


class TransactionResponse(CamelModel):
    id: str
    order_id: str
    amount: Decimal
    payment_method: str
    status: str
    payment_intent_id: Optional[str] = None
    created_at: datetime


class PurchaseResponse(CamelModel):
    order: OrderResponse
    transaction: TransactionResponse


class OrderSummary(CamelModel):
    id: str
    customer_email: str
    status: str


class TransactionWithOrder(TransactionResponse):
    order: OrderSummary


class RefundResponse(CamelModel):
    success: bool = True
    transaction: TransactionResponse
    order: OrderResponse


class RecentTransaction(CamelModel):
    id: str
    amount: Decimal
    customer_email: str
    created_at: datetime


class DashboardStats(CamelModel):
    total_revenue: Decimal
    total_orders: int
    total_books: int
    average_order_value: Decimal
    recent_transactions: List[RecentTransaction]
