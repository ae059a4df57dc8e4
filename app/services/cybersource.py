import base64
import hashlib
import hmac
import json
import logging
from email.utils import formatdate
from typing import Any, Dict, Optional

import requests

from app.schemas.payment_schemas import ChargeRequest, ChargeResult

logger = logging.getLogger(__name__)

PAYMENTS_PATH = "/pts/v2/payments"

# CyberSource card type codes
CARD_TYPES = {
    "visa": "001",
    "mastercard": "002",
    "prepaid": "001",
}

# processingInformation.paymentSolution for digital wallets
PAYMENT_SOLUTIONS = {
    "apple_pay": "001",
    "google_pay": "012",
}


class CyberSourceClient:
    """
    CyberSource REST payments with HTTP signature authentication.

    Visa, prepaid cards and the digital wallets settle here; Mastercard
    falls back here when no Mastercard gateway is configured.
    """

    def __init__(
        self,
        merchant_id: str,
        key_id: str,
        shared_secret: str,
        host: str = "apitest.cybersource.com",
        timeout: float = 30.0,
        http: Optional[requests.Session] = None,
    ):
        self.merchant_id = merchant_id
        self.key_id = key_id
        self.shared_secret = shared_secret
        self.host = host
        self.timeout = timeout
        self.http = http or requests.Session()

    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        payment_information: Dict[str, Any] = {
            "card": {"type": CARD_TYPES.get(request.payment_method, "001")}
        }

        if request.card is not None:
            payment_information["card"].update({
                "number": request.card.number.replace(" ", ""),
                "expirationMonth": f"{request.card.expiry_month:02d}",
                "expirationYear": str(
                    request.card.expiry_year if request.card.expiry_year >= 100
                    else 2000 + request.card.expiry_year
                ),
            })
            if request.card.security_code:
                payment_information["card"]["securityCode"] = request.card.security_code

        processing_information: Dict[str, Any] = {"capture": True}
        if request.payment_method in PAYMENT_SOLUTIONS:
            processing_information["paymentSolution"] = PAYMENT_SOLUTIONS[request.payment_method]
            payment_information.pop("card")

        return {
            "clientReferenceInformation": {"code": request.order_ref},
            "processingInformation": processing_information,
            "paymentInformation": payment_information,
            "orderInformation": {
                "amountDetails": {
                    "totalAmount": f"{request.amount:.2f}",
                    "currency": request.currency,
                },
                "billTo": {"email": request.email},
            },
        }

    def signature_headers(self, body: str, date: Optional[str] = None) -> Dict[str, str]:
        date = date or formatdate(usegmt=True)
        digest = "SHA-256=" + base64.b64encode(
            hashlib.sha256(body.encode("utf-8")).digest()
        ).decode("utf-8")

        signing_string = "\n".join([
            f"host: {self.host}",
            f"date: {date}",
            f"(request-target): post {PAYMENTS_PATH}",
            f"digest: {digest}",
            f"v-c-merchant-id: {self.merchant_id}",
        ])
        signature = base64.b64encode(
            hmac.new(
                base64.b64decode(self.shared_secret),
                signing_string.encode("utf-8"),
                hashlib.sha256,
            ).digest()
        ).decode("utf-8")

        return {
            "host": self.host,
            "date": date,
            "digest": digest,
            "v-c-merchant-id": self.merchant_id,
            "signature": (
                f'keyid="{self.key_id}", algorithm="HmacSHA256", '
                f'headers="host date (request-target) digest v-c-merchant-id", '
                f'signature="{signature}"'
            ),
            "Content-Type": "application/json",
        }

    def charge(self, request: ChargeRequest) -> ChargeResult:
        body = json.dumps(self.build_payload(request))

        try:
            response = self.http.post(
                f"https://{self.host}{PAYMENTS_PATH}",
                data=body,
                headers=self.signature_headers(body),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"CyberSource request failed: {e}")
            return ChargeResult.failed(str(e) or "Payment processing failed")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            logger.error(f"CyberSource returned a non-JSON body ({response.status_code})")
            return ChargeResult.failed("Payment system error")

        if response.status_code < 400 and data.get("status") == "AUTHORIZED":
            return ChargeResult(success=True, transaction_id=data.get("id"))

        error = (
            (data.get("errorInformation") or {}).get("message")
            or data.get("message")
            or "Payment declined"
        )
        logger.warning(f"CyberSource declined {request.order_ref}: {error}")
        return ChargeResult.failed(error)
