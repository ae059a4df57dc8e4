import logging
from typing import Any, Dict, Optional
from uuid import uuid4

import requests

from app.schemas.payment_schemas import ChargeRequest, ChargeResult

logger = logging.getLogger(__name__)


class MastercardGatewayClient:
    """Mastercard payment gateway REST API, PAY operation."""

    def __init__(
        self,
        merchant_id: str,
        api_password: str,
        host: str = "test-gateway.mastercard.com",
        api_version: str = "100",
        timeout: float = 30.0,
        http: Optional[requests.Session] = None,
    ):
        self.merchant_id = merchant_id
        self.api_password = api_password
        self.host = host
        self.api_version = api_version
        self.timeout = timeout
        self.http = http or requests.Session()

    def transaction_url(self, order_ref: str, transaction_ref: str) -> str:
        return (
            f"https://{self.host}/api/rest/version/{self.api_version}"
            f"/merchant/{self.merchant_id}/order/{order_ref}/transaction/{transaction_ref}"
        )

    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "apiOperation": "PAY",
            "order": {
                "amount": f"{request.amount:.2f}",
                "currency": request.currency,
            },
            "customer": {"email": request.email},
        }

        if request.card is not None:
            payload["sourceOfFunds"] = {
                "type": "CARD",
                "provided": {
                    "card": {
                        "number": request.card.number.replace(" ", ""),
                        "expiry": {
                            "month": f"{request.card.expiry_month:02d}",
                            "year": f"{request.card.expiry_year % 100:02d}",
                        },
                        **(
                            {"securityCode": request.card.security_code}
                            if request.card.security_code else {}
                        ),
                    }
                },
            }
        else:
            # hosted checkout: the session holds the card
            payload["session"] = {"id": request.order_ref}

        return payload

    def charge(self, request: ChargeRequest) -> ChargeResult:
        transaction_ref = uuid4().hex

        try:
            response = self.http.put(
                self.transaction_url(request.order_ref, transaction_ref),
                json=self.build_payload(request),
                auth=(f"merchant.{self.merchant_id}", self.api_password),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Mastercard gateway request failed: {e}")
            return ChargeResult.failed(str(e) or "Payment processing failed")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            logger.error(f"Mastercard gateway returned a non-JSON body ({response.status_code})")
            return ChargeResult.failed("Payment system error")

        gateway_code = (data.get("response") or {}).get("gatewayCode")
        if data.get("result") == "SUCCESS" and gateway_code == "APPROVED":
            transaction = data.get("transaction") or {}
            return ChargeResult(success=True, transaction_id=transaction.get("id", transaction_ref))

        error = (
            (data.get("error") or {}).get("explanation")
            or (f"Payment declined ({gateway_code})" if gateway_code else None)
            or "Payment declined"
        )
        logger.warning(f"Mastercard gateway declined {request.order_ref}: {error}")
        return ChargeResult.failed(error)
