"""
Checkout orchestration: validate a cart against the store, charge, record.

    CART_SUBMITTED -> VALIDATING -> CHARGING -> RECORDING -> DONE
                                     CHARGING -> REJECTED

The charge always uses the server-recomputed total. Nothing is written
before the charge in the default flow; the card and hosted-checkout flows
write a pending order first so the gateway call has a reconciliation anchor.
"""
import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from app.exceptions import (
    CheckoutValidationError,
    ConflictError,
    NotFoundError,
    PaymentFailedError,
    StoreError,
)
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from app.schemas.checkout_schemas import CartLine
from app.schemas.payment_schemas import CardDetails, ChargeRequest
from app.services.payment_service import PaymentGateway
from app.storage.base import LedgerStore, to_money
from app.utils.card import validate_card

logger = logging.getLogger(__name__)

# absorbs rounding between client-side float totals and the server total
AMOUNT_TOLERANCE = Decimal("0.01")
# largest value the NUMERIC(10, 2) money columns hold
MAX_ORDER_TOTAL = Decimal("99999999.99")


@dataclass
class PricedLine:
    book: Book
    quantity: int
    price: Decimal


@dataclass
class PricedCart:
    lines: List[PricedLine]
    total: Decimal

    def order_items(self) -> List[OrderItem]:
        return [
            OrderItem(book_id=line.book.id, quantity=line.quantity, price=line.price)
            for line in self.lines
        ]


def new_session_id() -> str:
    return secrets.token_hex(16)


def price_cart(
    store: LedgerStore,
    items: Sequence[CartLine],
    client_amount: Optional[Decimal] = None,
) -> PricedCart:
    """
    Re-price every line against the store. Any per-item price difference or
    an aggregate difference beyond one cent rejects the whole cart.
    """
    if not items:
        raise CheckoutValidationError("No items provided for payment session")

    lines = []
    total = Decimal("0.00")

    for item in items:
        book = store.get_book(item.book_id)
        if not book:
            raise CheckoutValidationError(f"Book {item.book_id} not found")

        if item.quantity < 1:
            raise CheckoutValidationError(f"Invalid quantity for book {book.title}")

        store_price = to_money(book.price)
        if Decimal(item.price) != store_price:
            raise CheckoutValidationError(f"Price mismatch for book {book.title}")

        lines.append(PricedLine(book=book, quantity=item.quantity, price=store_price))
        total += store_price * item.quantity

    if total > MAX_ORDER_TOTAL:
        raise CheckoutValidationError("Order total exceeds the maximum amount")

    if client_amount is not None and abs(total - Decimal(client_amount)) > AMOUNT_TOLERANCE:
        raise CheckoutValidationError("Amount mismatch")

    return PricedCart(lines=lines, total=to_money(total))


def create_payment_session(
    store: LedgerStore,
    items: Sequence[CartLine],
    amount: Decimal,
) -> Tuple[str, Decimal]:
    cart = price_cart(store, items, amount)
    return new_session_id(), cart.total


def place_order(
    *,
    store: LedgerStore,
    gateway: PaymentGateway,
    customer_email: str,
    payment_method: str,
    items: Sequence[CartLine],
    session_id: Optional[str] = None,
    amount: Optional[Decimal] = None,
    currency: str = "USD",
) -> Tuple[Order, Transaction]:
    """Default flow: validate, charge, then record everything in one unit."""
    cart = price_cart(store, items, amount)
    order_ref = session_id or new_session_id()

    result = gateway.charge(ChargeRequest(
        amount=cart.total,
        currency=currency,
        email=customer_email,
        payment_method=payment_method,
        order_ref=order_ref,
    ))
    if not result.success:
        raise PaymentFailedError(
            result.error or "Payment processing failed. Please try again."
        )

    order = Order(customer_email=customer_email, total_amount=cart.total, status="completed")
    transaction = Transaction(
        order_id=order.id,
        amount=cart.total,
        payment_method=payment_method,
        status="completed",
        payment_intent_id=result.transaction_id,
    )
    wallet_entry = WalletTransaction(
        type="payment_received",
        amount=cart.total,
        status="completed",
        description=f"Payment for order {order.id}",
    )

    try:
        order, _, transaction, _ = store.record_purchase(
            order, cart.order_items(), transaction, wallet_entry
        )
    except StoreError:
        # money moved but nothing was recorded
        logger.error(
            f"UNRECORDED CHARGE: gateway transaction {result.transaction_id} "
            f"for {customer_email}, amount {cart.total}, ref {order_ref}"
        )
        raise

    logger.info(f"Order {order.id} completed ({payment_method}, {cart.total})")
    return order, transaction


def _open_pending_order(
    store: LedgerStore,
    customer_email: str,
    cart: PricedCart,
    payment_method: str,
    payment_intent_id: Optional[str] = None,
) -> Tuple[Order, Transaction]:
    order = Order(customer_email=customer_email, total_amount=cart.total, status="pending")
    transaction = Transaction(
        order_id=order.id,
        amount=cart.total,
        payment_method=payment_method,
        status="pending",
        payment_intent_id=payment_intent_id,
    )
    order, _, transaction, _ = store.record_purchase(order, cart.order_items(), transaction)
    return order, transaction


def charge_card(
    *,
    store: LedgerStore,
    gateway: PaymentGateway,
    customer_email: str,
    card: CardDetails,
    items: Sequence[CartLine],
    amount: Optional[Decimal] = None,
    currency: str = "USD",
    payment_method: str = "visa",
) -> Tuple[Order, Transaction]:
    """
    Card-present flow. A pending order and transaction are written before
    the charge and settled afterwards; a decline leaves them as
    pending/failed for the audit trail.
    """
    card_error = validate_card(card)
    if card_error:
        raise CheckoutValidationError(card_error)

    cart = price_cart(store, items, amount)
    order, transaction = _open_pending_order(store, customer_email, cart, payment_method)

    result = gateway.charge(ChargeRequest(
        amount=cart.total,
        currency=currency,
        email=customer_email,
        payment_method=payment_method,
        order_ref=order.id,
        card=card,
    ))

    try:
        transaction, order, _ = store.settle_pending_purchase(
            transaction.id,
            succeeded=result.success,
            payment_intent_id=result.transaction_id,
            description=f"{payment_method.capitalize()} payment for order {order.id}",
        )
    except (StoreError, ConflictError):
        if result.success:
            # card was charged but the pending order was never settled
            logger.error(
                f"UNRECORDED CHARGE: gateway transaction {result.transaction_id} "
                f"for {customer_email}, amount {cart.total}, order {order.id}"
            )
        raise

    if not result.success:
        raise PaymentFailedError(result.error or "Payment declined", order_id=order.id)

    return order, transaction


def start_hosted_checkout(
    *,
    store: LedgerStore,
    customer_email: str,
    items: Sequence[CartLine],
    amount: Decimal,
    checkout_origin: str,
) -> dict:
    """Mastercard hosted checkout: pending order keyed by the session id."""
    cart = price_cart(store, items, amount)
    session_id = new_session_id()

    order, transaction = _open_pending_order(
        store, customer_email, cart, "mastercard", payment_intent_id=session_id
    )

    return {
        "success": True,
        "sessionId": session_id,
        "orderId": order.id,
        "checkoutUrl": f"{checkout_origin}?sessionId={session_id}",
    }


def complete_hosted_checkout(*, store: LedgerStore, session_id: str, success: bool) -> Transaction:
    transaction = store.get_transaction_by_payment_intent(session_id)
    if not transaction:
        raise NotFoundError("Transaction not found")

    transaction, _, _ = store.settle_pending_purchase(transaction.id, succeeded=success)
    return transaction
