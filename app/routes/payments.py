from fastapi import APIRouter, Depends, HTTPException

from app.config import Settings
from app.dependencies.services import get_gateway, get_settings, get_storage
from app.exceptions import (
    CheckoutValidationError,
    ConflictError,
    NotFoundError,
    PaymentFailedError,
)
from app.schemas.checkout_schemas import (
    CreateSessionRequest,
    CreateSessionResponse,
    HostedCompleteRequest,
    HostedSessionRequest,
    VisaChargeRequest,
)
from app.services.checkout_service import (
    charge_card,
    complete_hosted_checkout,
    create_payment_session,
    start_hosted_checkout,
)
from app.services.payment_service import PaymentGateway
from app.storage.base import LedgerStore

router = APIRouter()


@router.post("/create-session", response_model=CreateSessionResponse)
def create_session(payload: CreateSessionRequest, store: LedgerStore = Depends(get_storage)):
    try:
        session_id, total = create_payment_session(store, payload.items, payload.amount)
    except CheckoutValidationError as e:
        raise HTTPException(400, str(e))

    return CreateSessionResponse(success=True, session_id=session_id, total_amount=total)


@router.post("/visa/charge")
def visa_charge(
    payload: VisaChargeRequest,
    store: LedgerStore = Depends(get_storage),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        order, transaction = charge_card(
            store=store,
            gateway=gateway,
            customer_email=payload.customer_email,
            card=payload.card,
            items=payload.items,
            amount=payload.amount,
            currency=payload.currency,
        )
    except CheckoutValidationError as e:
        raise HTTPException(400, str(e))
    except PaymentFailedError as e:
        raise HTTPException(400, e.message)
    except ConflictError as e:
        raise HTTPException(400, str(e))

    return {
        "success": True,
        "orderId": order.id,
        "transactionId": transaction.payment_intent_id,
    }


@router.post("/mastercard/create-session")
def mastercard_create_session(
    payload: HostedSessionRequest,
    store: LedgerStore = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    try:
        return start_hosted_checkout(
            store=store,
            customer_email=payload.customer_email,
            items=payload.items,
            amount=payload.amount,
            checkout_origin=settings.mastercard_checkout_origin,
        )
    except CheckoutValidationError as e:
        raise HTTPException(400, str(e))


@router.post("/mastercard/complete")
def mastercard_complete(payload: HostedCompleteRequest, store: LedgerStore = Depends(get_storage)):
    try:
        transaction = complete_hosted_checkout(
            store=store,
            session_id=payload.session_id,
            success=payload.success,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(400, str(e))

    if transaction.status != "completed":
        return {
            "success": False,
            "message": "Payment failed",
            "status": transaction.status,
            "orderId": transaction.order_id,
        }

    return {"success": True, "status": transaction.status, "orderId": transaction.order_id}
