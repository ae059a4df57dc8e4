from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies.services import get_storage
from app.exceptions import ConflictError, NotFoundError
from app.schemas.order_schemas import RefundResponse, TransactionWithOrder
from app.services.refund_service import refund_transaction
from app.storage.base import LedgerStore

router = APIRouter()


@router.get("", response_model=List[TransactionWithOrder])
def list_transactions(store: LedgerStore = Depends(get_storage)):
    orders = {order.id: order for order in store.get_orders()}

    results = []
    for transaction in store.get_transactions():
        order = orders.get(transaction.order_id)
        results.append({
            **transaction.model_dump(),
            "order": {
                "id": order.id if order else "",
                "customer_email": order.customer_email if order else "Unknown",
                "status": order.status if order else "unknown",
            },
        })

    return results


@router.post("/{transaction_id}/refund", response_model=RefundResponse)
def refund(transaction_id: str, store: LedgerStore = Depends(get_storage)):
    try:
        transaction, order, _ = refund_transaction(store=store, transaction_id=transaction_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(400, str(e))

    return {"success": True, "transaction": transaction, "order": order}
