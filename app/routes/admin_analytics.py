from decimal import Decimal

from fastapi import APIRouter, Depends

from app.dependencies.services import get_storage
from app.schemas.order_schemas import DashboardStats
from app.storage.base import LedgerStore, to_money

router = APIRouter()

RECENT_LIMIT = 5


@router.get("/dashboard-stats", response_model=DashboardStats)
def dashboard_stats(store: LedgerStore = Depends(get_storage)):
    transactions = store.get_transactions()
    orders = store.get_orders()
    books = store.get_books()

    total_revenue = sum(
        (Decimal(t.amount) for t in transactions if t.status == "completed"),
        Decimal("0.00"),
    )
    average = total_revenue / len(orders) if orders else Decimal("0.00")

    emails = {order.id: order.customer_email for order in orders}
    recent = [
        {
            "id": t.id,
            "amount": t.amount,
            "customer_email": emails.get(t.order_id, "Unknown"),
            "created_at": t.created_at,
        }
        for t in transactions[:RECENT_LIMIT]
    ]

    return {
        "total_revenue": to_money(total_revenue),
        "total_orders": len(orders),
        "total_books": len(books),
        "average_order_value": to_money(average),
        "recent_transactions": recent,
    }
