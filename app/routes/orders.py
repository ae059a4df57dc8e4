from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.dependencies.services import get_gateway, get_storage
from app.exceptions import CheckoutValidationError, PaymentFailedError
from app.schemas.checkout_schemas import CreateOrderRequest
from app.schemas.order_schemas import PurchaseResponse
from app.services.checkout_service import place_order
from app.services.payment_service import PaymentGateway
from app.storage.base import LedgerStore

router = APIRouter()


@router.post("", response_model=PurchaseResponse)
def create_order(
    payload: CreateOrderRequest,
    store: LedgerStore = Depends(get_storage),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        order, transaction = place_order(
            store=store,
            gateway=gateway,
            customer_email=payload.customer_email,
            payment_method=payload.payment_method,
            items=payload.items,
            session_id=payload.session_id,
            amount=payload.amount,
            currency=payload.currency,
        )
    except CheckoutValidationError as e:
        raise HTTPException(400, str(e))
    except PaymentFailedError as e:
        return JSONResponse(
            status_code=400,
            content={"error": "Payment failed", "message": e.message},
        )

    return {"order": order, "transaction": transaction}
