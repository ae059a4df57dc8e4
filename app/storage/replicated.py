import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.models.admin import Admin
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from app.services.backup_queue import BackupQueue
from app.storage.base import LedgerStore, WalletBalance
from app.storage.statements import (
    Statement,
    delete_statement,
    insert_statement,
    status_statement,
    update_statement,
)

logger = logging.getLogger(__name__)


class ReplicatedStorage(LedgerStore):
    """
    Wraps a primary store and mirrors every successful write to the
    configured secondary databases through the backup queue.

    Mirroring never fails the primary write: enqueue errors are logged and
    dropped. Admin rows stay on the primary only.
    """

    def __init__(self, primary: LedgerStore, queue: BackupQueue, targets: Sequence[str]):
        self.primary = primary
        self.queue = queue
        self.targets = list(targets)

    def _mirror(self, *statements: Statement) -> None:
        for conn in self.targets:
            for sql, params in statements:
                try:
                    self.queue.enqueue(conn, sql, params)
                except Exception:
                    logger.exception(f"Could not enqueue backup statement for {conn}")

    def backup_status(self) -> Dict[str, Any]:
        return {"targets": len(self.targets), "primary": type(self.primary).__name__}

    # -------- Books --------

    def get_books(self) -> List[Book]:
        return self.primary.get_books()

    def get_book(self, book_id: str) -> Optional[Book]:
        return self.primary.get_book(book_id)

    def create_book(self, book: Book) -> Book:
        book = self.primary.create_book(book)
        self._mirror(insert_statement(book))
        return book

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        book = self.primary.update_book(book_id, changes)
        if book:
            self._mirror(update_statement(book))
        return book

    def delete_book(self, book_id: str) -> None:
        self.primary.delete_book(book_id)
        self._mirror(delete_statement(Book, book_id))

    # -------- Orders --------

    def get_orders(self) -> List[Order]:
        return self.primary.get_orders()

    def get_order(self, order_id: str) -> Optional[Order]:
        return self.primary.get_order(order_id)

    def create_order(self, order: Order) -> Order:
        order = self.primary.create_order(order)
        self._mirror(insert_statement(order))
        return order

    def update_order_status(self, order_id: str, status: str) -> None:
        self.primary.update_order_status(order_id, status)
        self._mirror(status_statement(Order, order_id, status=status))

    # -------- Order items --------

    def create_order_item(self, item: OrderItem) -> OrderItem:
        item = self.primary.create_order_item(item)
        self._mirror(insert_statement(item))
        return item

    def get_order_items(self, order_id: str) -> List[OrderItem]:
        return self.primary.get_order_items(order_id)

    # -------- Transactions --------

    def get_transactions(self) -> List[Transaction]:
        return self.primary.get_transactions()

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self.primary.get_transaction(transaction_id)

    def get_transaction_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        return self.primary.get_transaction_by_payment_intent(payment_intent_id)

    def create_transaction(self, transaction: Transaction) -> Transaction:
        transaction = self.primary.create_transaction(transaction)
        self._mirror(insert_statement(transaction))
        return transaction

    def update_transaction_status(
        self, transaction_id: str, status: str, expected_status: Optional[str] = None
    ) -> bool:
        changed = self.primary.update_transaction_status(transaction_id, status, expected_status)
        if changed or expected_status is None:
            self._mirror(status_statement(Transaction, transaction_id, status=status))
        return changed

    # -------- Admins --------

    def get_admin_by_username(self, username: str) -> Optional[Admin]:
        return self.primary.get_admin_by_username(username)

    def create_admin(self, admin: Admin) -> Admin:
        return self.primary.create_admin(admin)

    # -------- Wallet --------

    def get_wallet_transactions(self) -> List[WalletTransaction]:
        return self.primary.get_wallet_transactions()

    def create_wallet_transaction(self, entry: WalletTransaction) -> WalletTransaction:
        entry = self.primary.create_wallet_transaction(entry)
        self._mirror(insert_statement(entry))
        return entry

    def get_wallet_balance(self) -> WalletBalance:
        return self.primary.get_wallet_balance()

    # -------- Composite units --------

    def record_purchase(
        self,
        order: Order,
        items: List[OrderItem],
        transaction: Transaction,
        wallet_entry: Optional[WalletTransaction] = None,
    ) -> Tuple[Order, List[OrderItem], Transaction, Optional[WalletTransaction]]:
        order, items, transaction, wallet_entry = self.primary.record_purchase(
            order, items, transaction, wallet_entry
        )

        statements = [insert_statement(order)]
        statements += [insert_statement(item) for item in items]
        statements.append(insert_statement(transaction))
        if wallet_entry is not None:
            statements.append(insert_statement(wallet_entry))
        self._mirror(*statements)

        return order, items, transaction, wallet_entry

    def refund_transaction(
        self, transaction_id: str, description: str
    ) -> Tuple[Transaction, Order, WalletTransaction]:
        transaction, order, entry = self.primary.refund_transaction(transaction_id, description)
        self._mirror(
            status_statement(Transaction, transaction.id, status=transaction.status),
            status_statement(Order, order.id, status=order.status),
            insert_statement(entry),
        )
        return transaction, order, entry

    def settle_pending_purchase(
        self,
        transaction_id: str,
        succeeded: bool,
        payment_intent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Tuple[Transaction, Order, Optional[WalletTransaction]]:
        transaction, order, entry = self.primary.settle_pending_purchase(
            transaction_id, succeeded, payment_intent_id, description
        )

        statements = [
            status_statement(
                Transaction,
                transaction.id,
                status=transaction.status,
                payment_intent_id=transaction.payment_intent_id,
            ),
            status_statement(Order, order.id, status=order.status),
        ]
        if entry is not None:
            statements.append(insert_statement(entry))
        self._mirror(*statements)

        return transaction, order, entry

    def transfer_to_bank(self, amount: Decimal, bank_account_info: str) -> WalletTransaction:
        entry = self.primary.transfer_to_bank(amount, bank_account_info)
        self._mirror(insert_statement(entry))
        return entry

    def ping(self) -> bool:
        return self.primary.ping()

    def close(self) -> None:
        self.primary.close()
