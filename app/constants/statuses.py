from enum import Enum


class PaymentMethod(str, Enum):
    MASTERCARD = "mastercard"
    VISA = "visa"
    PREPAID = "prepaid"
    GOOGLE_PAY = "google_pay"
    APPLE_PAY = "apple_pay"


# transaction status machine; refunded and failed are terminal
ALLOWED_TRANSACTION_TRANSITIONS = {
    "pending": ["completed", "failed"],
    "completed": ["refunded"],
    "failed": [],
    "refunded": [],
}


def can_transition(current: str, target: str, transitions: dict = ALLOWED_TRANSACTION_TRANSITIONS) -> bool:
    return target in transitions.get(current, [])
