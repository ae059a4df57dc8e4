import logging
from typing import Dict, Optional, Protocol
from uuid import uuid4

from app.config import Settings
from app.constants.statuses import PaymentMethod
from app.schemas.payment_schemas import ChargeRequest, ChargeResult
from app.services.cybersource import CyberSourceClient
from app.services.mastercard import MastercardGatewayClient
from app.utils.card import validate_card

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def charge(self, request: ChargeRequest) -> ChargeResult: ...


class SimulatedGateway:
    """Approves every charge that passes local card checks. Local development only."""

    def charge(self, request: ChargeRequest) -> ChargeResult:
        logger.info(f"Simulated charge: {request.order_ref}, amount: {request.amount}")
        return ChargeResult(success=True, transaction_id=f"sim_{uuid4().hex}")


class PaymentGatewayAdapter:
    """
    Uniform charge() over every supported payment method.

    Never raises: unsupported methods, local card rejections, network and
    gateway errors all come back as ChargeResult(success=False, error=...).
    """

    def __init__(self, routes: Dict[PaymentMethod, PaymentGateway]):
        self.routes = routes

    def charge(self, request: ChargeRequest) -> ChargeResult:
        try:
            method = PaymentMethod(request.payment_method)
        except ValueError:
            return ChargeResult.failed("Invalid payment method")

        gateway = self.routes.get(method)
        if gateway is None:
            return ChargeResult.failed("The selected payment method is not supported.")

        if request.card is not None:
            card_error = validate_card(request.card)
            if card_error:
                return ChargeResult.failed(card_error)

        try:
            return gateway.charge(request)
        except Exception as e:
            logger.exception(f"Payment processing error for {request.order_ref}")
            return ChargeResult.failed(str(e) or "Payment system error")


def build_gateway(settings: Settings) -> PaymentGatewayAdapter:
    if settings.payment_gateway == "simulated":
        simulated = SimulatedGateway()
        return PaymentGatewayAdapter({method: simulated for method in PaymentMethod})

    cybersource = CyberSourceClient(
        merchant_id=settings.cybersource_merchant_id,
        key_id=settings.cybersource_key_id,
        shared_secret=settings.cybersource_shared_secret,
        host=settings.cybersource_host,
        timeout=settings.payment_timeout_seconds,
    )

    mastercard: Optional[PaymentGateway] = None
    if settings.mastercard_merchant_id:
        mastercard = MastercardGatewayClient(
            merchant_id=settings.mastercard_merchant_id,
            api_password=settings.mastercard_api_password,
            host=settings.mastercard_host,
            api_version=settings.mastercard_api_version,
            timeout=settings.payment_timeout_seconds,
        )

    return PaymentGatewayAdapter({
        PaymentMethod.VISA: cybersource,
        PaymentMethod.PREPAID: cybersource,
        PaymentMethod.GOOGLE_PAY: cybersource,
        PaymentMethod.APPLE_PAY: cybersource,
        PaymentMethod.MASTERCARD: mastercard or cybersource,
    })
