from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.exceptions import InvalidRequestError
from app.models.admin import Admin
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Normalize a price or amount to a 2-decimal Decimal."""
    if isinstance(value, float):
        value = repr(value)
    try:
        money = Decimal(str(value)).quantize(CENT)
    except InvalidOperation:
        raise InvalidRequestError(f"Invalid amount: {value}")
    if not money.is_finite():
        raise InvalidRequestError(f"Invalid amount: {value}")
    return money


@dataclass(frozen=True)
class WalletBalance:
    available_balance: Decimal
    pending_balance: Decimal


def fold_wallet_balance(entries: Iterable[WalletTransaction]) -> WalletBalance:
    available = Decimal("0.00")
    pending = Decimal("0.00")

    for tx in entries:
        amount = Decimal(tx.amount)

        if tx.status == "completed":
            if tx.type == "payment_received":
                available += amount
            elif tx.type in ("transfer_to_bank", "refund_issued"):
                available -= amount
        elif tx.status == "pending" and tx.type == "payment_received":
            pending += amount

    return WalletBalance(available_balance=available, pending_balance=pending)


class LedgerStore(ABC):
    """
    Capability set shared by every storage backend.

    Single-row methods do exactly one write. The composite methods
    (record_purchase, refund_transaction, settle_pending_purchase,
    transfer_to_bank) commit all of their rows or none of them.
    """

    # Books
    @abstractmethod
    def get_books(self) -> List[Book]: ...

    @abstractmethod
    def get_book(self, book_id: str) -> Optional[Book]: ...

    @abstractmethod
    def create_book(self, book: Book) -> Book: ...

    @abstractmethod
    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]: ...

    @abstractmethod
    def delete_book(self, book_id: str) -> None: ...

    # Orders
    @abstractmethod
    def get_orders(self) -> List[Order]: ...

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    def create_order(self, order: Order) -> Order: ...

    @abstractmethod
    def update_order_status(self, order_id: str, status: str) -> None: ...

    # Order items
    @abstractmethod
    def create_order_item(self, item: OrderItem) -> OrderItem: ...

    @abstractmethod
    def get_order_items(self, order_id: str) -> List[OrderItem]: ...

    # Transactions
    @abstractmethod
    def get_transactions(self) -> List[Transaction]: ...

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...

    @abstractmethod
    def get_transaction_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]: ...

    @abstractmethod
    def create_transaction(self, transaction: Transaction) -> Transaction: ...

    @abstractmethod
    def update_transaction_status(
        self, transaction_id: str, status: str, expected_status: Optional[str] = None
    ) -> bool:
        """Returns False when expected_status is given and did not match."""

    # Admins
    @abstractmethod
    def get_admin_by_username(self, username: str) -> Optional[Admin]: ...

    @abstractmethod
    def create_admin(self, admin: Admin) -> Admin: ...

    # Wallet
    @abstractmethod
    def get_wallet_transactions(self) -> List[WalletTransaction]: ...

    @abstractmethod
    def create_wallet_transaction(self, entry: WalletTransaction) -> WalletTransaction: ...

    def get_wallet_balance(self) -> WalletBalance:
        # recomputed from the full log on every call
        return fold_wallet_balance(self.get_wallet_transactions())

    # Composite units
    @abstractmethod
    def record_purchase(
        self,
        order: Order,
        items: List[OrderItem],
        transaction: Transaction,
        wallet_entry: Optional[WalletTransaction] = None,
    ) -> Tuple[Order, List[OrderItem], Transaction, Optional[WalletTransaction]]: ...

    @abstractmethod
    def refund_transaction(
        self, transaction_id: str, description: str
    ) -> Tuple[Transaction, Order, WalletTransaction]: ...

    @abstractmethod
    def settle_pending_purchase(
        self,
        transaction_id: str,
        succeeded: bool,
        payment_intent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Tuple[Transaction, Order, Optional[WalletTransaction]]: ...

    @abstractmethod
    def transfer_to_bank(self, amount: Decimal, bank_account_info: str) -> WalletTransaction: ...

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass
