import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from app.constants.statuses import can_transition
from app.exceptions import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    StoreError,
)
from app.models.admin import Admin
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from app.storage.base import LedgerStore, fold_wallet_balance, to_money
from app.storage.sql import BOOK_FIELDS


def _copy(obj):
    return type(obj).model_validate(obj.model_dump())


def _newest_first(rows):
    # same ordering as the SQL backends: created_at desc, id asc on ties
    rows = sorted(rows, key=lambda r: r.id)
    return [_copy(r) for r in sorted(rows, key=lambda r: r.created_at, reverse=True)]


class MemoryStorage(LedgerStore):
    """In-process backend for tests and throwaway runs. Thread-safe."""

    def __init__(self):
        self._lock = threading.RLock()
        self.books: Dict[str, Book] = {}
        self.orders: Dict[str, Order] = {}
        self.order_items: Dict[str, OrderItem] = {}
        self.transactions: Dict[str, Transaction] = {}
        self.admins: Dict[str, Admin] = {}
        self.wallet_transactions: Dict[str, WalletTransaction] = {}

    # constraint checks mirror the relational schema

    @staticmethod
    def _check_new(table: Dict[str, Any], obj) -> None:
        if obj.id in table:
            raise StoreError(f"Constraint violation: duplicate key {obj.id}")

    def _check_item(self, item: OrderItem, pending_orders=()) -> None:
        if item.order_id not in self.orders and item.order_id not in pending_orders:
            raise StoreError(f"Constraint violation: order {item.order_id} does not exist")
        if item.book_id not in self.books:
            raise StoreError(f"Constraint violation: book {item.book_id} does not exist")
        if item.quantity is None or item.quantity < 1:
            raise StoreError("Constraint violation: quantity must be at least 1")

    # -------- Books --------

    def get_books(self) -> List[Book]:
        with self._lock:
            return _newest_first(self.books.values())

    def get_book(self, book_id: str) -> Optional[Book]:
        with self._lock:
            book = self.books.get(book_id)
            return _copy(book) if book else None

    def create_book(self, book: Book) -> Book:
        with self._lock:
            self._check_new(self.books, book)
            book.price = to_money(book.price)
            self.books[book.id] = _copy(book)
            return book

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        with self._lock:
            if book_id not in self.books:
                return None

            book = _copy(self.books[book_id])
            for field in BOOK_FIELDS:
                if changes.get(field) is not None:
                    setattr(book, field, changes[field])
            book.price = to_money(book.price)

            self.books[book_id] = book
            return _copy(book)

    def delete_book(self, book_id: str) -> None:
        with self._lock:
            if any(i.book_id == book_id for i in self.order_items.values()):
                raise StoreError(f"Constraint violation: book {book_id} is referenced by orders")
            self.books.pop(book_id, None)

    # -------- Orders --------

    def get_orders(self) -> List[Order]:
        with self._lock:
            return _newest_first(self.orders.values())

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self.orders.get(order_id)
            return _copy(order) if order else None

    def create_order(self, order: Order) -> Order:
        with self._lock:
            self._check_new(self.orders, order)
            order.total_amount = to_money(order.total_amount)
            self.orders[order.id] = _copy(order)
            return order

    def update_order_status(self, order_id: str, status: str) -> None:
        with self._lock:
            if order_id in self.orders:
                self.orders[order_id].status = status

    # -------- Order items --------

    def create_order_item(self, item: OrderItem) -> OrderItem:
        with self._lock:
            self._check_new(self.order_items, item)
            self._check_item(item)
            item.price = to_money(item.price)
            self.order_items[item.id] = _copy(item)
            return item

    def get_order_items(self, order_id: str) -> List[OrderItem]:
        with self._lock:
            return [_copy(i) for i in self.order_items.values() if i.order_id == order_id]

    # -------- Transactions --------

    def get_transactions(self) -> List[Transaction]:
        with self._lock:
            return _newest_first(self.transactions.values())

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            transaction = self.transactions.get(transaction_id)
            return _copy(transaction) if transaction else None

    def get_transaction_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        with self._lock:
            for transaction in self.transactions.values():
                if transaction.payment_intent_id == payment_intent_id:
                    return _copy(transaction)
            return None

    def create_transaction(self, transaction: Transaction) -> Transaction:
        with self._lock:
            self._check_new(self.transactions, transaction)
            if transaction.order_id not in self.orders:
                raise StoreError(
                    f"Constraint violation: order {transaction.order_id} does not exist"
                )
            transaction.amount = to_money(transaction.amount)
            self.transactions[transaction.id] = _copy(transaction)
            return transaction

    def update_transaction_status(
        self, transaction_id: str, status: str, expected_status: Optional[str] = None
    ) -> bool:
        with self._lock:
            transaction = self.transactions.get(transaction_id)
            if not transaction:
                return False
            if expected_status is not None and transaction.status != expected_status:
                return False
            transaction.status = status
            return True

    # -------- Admins --------

    def get_admin_by_username(self, username: str) -> Optional[Admin]:
        with self._lock:
            for admin in self.admins.values():
                if admin.username == username:
                    return _copy(admin)
            return None

    def create_admin(self, admin: Admin) -> Admin:
        with self._lock:
            self._check_new(self.admins, admin)
            if any(a.username == admin.username for a in self.admins.values()):
                raise StoreError(f"Constraint violation: username {admin.username} already exists")
            self.admins[admin.id] = _copy(admin)
            return admin

    # -------- Wallet --------

    def get_wallet_transactions(self) -> List[WalletTransaction]:
        with self._lock:
            return _newest_first(self.wallet_transactions.values())

    def create_wallet_transaction(self, entry: WalletTransaction) -> WalletTransaction:
        with self._lock:
            self._check_new(self.wallet_transactions, entry)
            entry.amount = to_money(entry.amount)
            self.wallet_transactions[entry.id] = _copy(entry)
            return entry

    # -------- Composite units --------

    def record_purchase(
        self,
        order: Order,
        items: List[OrderItem],
        transaction: Transaction,
        wallet_entry: Optional[WalletTransaction] = None,
    ) -> Tuple[Order, List[OrderItem], Transaction, Optional[WalletTransaction]]:
        with self._lock:
            # validate everything before touching state so a failure writes nothing
            self._check_new(self.orders, order)
            self._check_new(self.transactions, transaction)
            for item in items:
                item.order_id = order.id
                self._check_new(self.order_items, item)
                self._check_item(item, pending_orders=(order.id,))
            if wallet_entry is not None:
                self._check_new(self.wallet_transactions, wallet_entry)

            order.total_amount = to_money(order.total_amount)
            self.orders[order.id] = _copy(order)

            for item in items:
                item.price = to_money(item.price)
                self.order_items[item.id] = _copy(item)

            transaction.order_id = order.id
            transaction.amount = to_money(transaction.amount)
            self.transactions[transaction.id] = _copy(transaction)

            if wallet_entry is not None:
                wallet_entry.amount = to_money(wallet_entry.amount)
                self.wallet_transactions[wallet_entry.id] = _copy(wallet_entry)

            return order, items, transaction, wallet_entry

    def refund_transaction(
        self, transaction_id: str, description: str
    ) -> Tuple[Transaction, Order, WalletTransaction]:
        with self._lock:
            transaction = self.transactions.get(transaction_id)
            if not transaction:
                raise NotFoundError("Transaction not found")
            if transaction.status == "refunded":
                raise ConflictError("Transaction already refunded")
            if not can_transition(transaction.status, "refunded"):
                raise ConflictError(
                    f"Only completed transactions can be refunded (status: {transaction.status})"
                )

            order = self.orders.get(transaction.order_id)
            if not order:
                raise NotFoundError("Order not found")

            entry = WalletTransaction(
                type="refund_issued",
                amount=to_money(transaction.amount),
                status="completed",
                description=description,
            )

            transaction.status = "refunded"
            order.status = "refunded"
            self.wallet_transactions[entry.id] = _copy(entry)

            return _copy(transaction), _copy(order), entry

    def settle_pending_purchase(
        self,
        transaction_id: str,
        succeeded: bool,
        payment_intent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Tuple[Transaction, Order, Optional[WalletTransaction]]:
        with self._lock:
            transaction = self.transactions.get(transaction_id)
            if not transaction:
                raise NotFoundError("Transaction not found")
            if not can_transition(transaction.status, "completed"):
                raise ConflictError(
                    f"Transaction is no longer pending (status: {transaction.status})"
                )

            order = self.orders.get(transaction.order_id)
            if not order:
                raise NotFoundError("Order not found")

            if payment_intent_id:
                transaction.payment_intent_id = payment_intent_id

            entry = None
            if succeeded:
                transaction.status = "completed"
                order.status = "completed"
                entry = WalletTransaction(
                    type="payment_received",
                    amount=to_money(transaction.amount),
                    status="completed",
                    description=description or f"Payment for order {order.id}",
                )
                self.wallet_transactions[entry.id] = _copy(entry)
            else:
                transaction.status = "failed"

            return _copy(transaction), _copy(order), entry

    def transfer_to_bank(self, amount: Decimal, bank_account_info: str) -> WalletTransaction:
        amount = to_money(amount)

        with self._lock:
            balance = fold_wallet_balance(self.wallet_transactions.values())
            if amount > balance.available_balance:
                raise InsufficientFundsError(
                    f"Insufficient balance. Available: ${balance.available_balance:.2f}, "
                    f"Requested: ${amount:.2f}"
                )

            entry = WalletTransaction(
                type="transfer_to_bank",
                amount=amount,
                status="completed",
                bank_account_info=bank_account_info,
                description=f"Transfer to bank account: {bank_account_info}",
            )
            self.wallet_transactions[entry.id] = _copy(entry)
            return entry
