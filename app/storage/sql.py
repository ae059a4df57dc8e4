import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select, text

from app.database import create_db_and_tables, make_engine
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

logger = logging.getLogger(__name__)

BOOK_FIELDS = ("title", "description", "price", "cover_image", "download_url", "category")


class SQLStorage(LedgerStore):
    """Ledger store on a relational database (PostgreSQL in production)."""

    def __init__(self, engine, create_tables: bool = False):
        self.engine = engine
        self._transfer_lock = threading.Lock()
        if create_tables:
            create_db_and_tables(engine)

    @classmethod
    def from_url(cls, url: str, create_tables: bool = False):
        return cls(make_engine(url), create_tables=create_tables)

    @contextmanager
    def _session(self):
        with Session(self.engine, expire_on_commit=False) as session:
            try:
                yield session
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(str(e)) from e

    @contextmanager
    def _unit(self):
        """One database transaction; commits on exit, rolls back on any error."""
        with Session(self.engine, expire_on_commit=False) as session:
            try:
                yield session
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise StoreError(f"Constraint violation: {e.orig}") from e
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(str(e)) from e
            except Exception:
                session.rollback()
                raise

    def _insert(self, obj):
        with self._unit() as session:
            session.add(obj)
        return obj

    # -------- Books --------

    def get_books(self) -> List[Book]:
        with self._session() as session:
            return list(session.exec(
                select(Book).order_by(Book.created_at.desc(), Book.id)
            ).all())

    def get_book(self, book_id: str) -> Optional[Book]:
        with self._session() as session:
            return session.get(Book, book_id)

    def create_book(self, book: Book) -> Book:
        book.price = to_money(book.price)
        return self._insert(book)

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        with self._unit() as session:
            book = session.get(Book, book_id)
            if not book:
                return None

            for field in BOOK_FIELDS:
                if changes.get(field) is not None:
                    setattr(book, field, changes[field])
            book.price = to_money(book.price)

            session.add(book)
        return book

    def delete_book(self, book_id: str) -> None:
        with self._unit() as session:
            book = session.get(Book, book_id)
            if book:
                session.delete(book)

    # -------- Orders --------

    def get_orders(self) -> List[Order]:
        with self._session() as session:
            return list(session.exec(
                select(Order).order_by(Order.created_at.desc(), Order.id)
            ).all())

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._session() as session:
            return session.get(Order, order_id)

    def create_order(self, order: Order) -> Order:
        order.total_amount = to_money(order.total_amount)
        return self._insert(order)

    def update_order_status(self, order_id: str, status: str) -> None:
        with self._unit() as session:
            session.connection().execute(
                update(Order.__table__)
                .where(Order.__table__.c.id == order_id)
                .values(status=status)
            )

    # -------- Order items --------

    def create_order_item(self, item: OrderItem) -> OrderItem:
        item.price = to_money(item.price)
        return self._insert(item)

    def get_order_items(self, order_id: str) -> List[OrderItem]:
        with self._session() as session:
            return list(session.exec(
                select(OrderItem).where(OrderItem.order_id == order_id)
            ).all())

    # -------- Transactions --------

    def get_transactions(self) -> List[Transaction]:
        with self._session() as session:
            return list(session.exec(
                select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id)
            ).all())

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._session() as session:
            return session.get(Transaction, transaction_id)

    def get_transaction_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        with self._session() as session:
            return session.exec(
                select(Transaction).where(Transaction.payment_intent_id == payment_intent_id)
            ).first()

    def create_transaction(self, transaction: Transaction) -> Transaction:
        transaction.amount = to_money(transaction.amount)
        return self._insert(transaction)

    def update_transaction_status(
        self, transaction_id: str, status: str, expected_status: Optional[str] = None
    ) -> bool:
        with self._unit() as session:
            return self._swap_transaction_status(session, transaction_id, status, expected_status)

    @staticmethod
    def _swap_transaction_status(session, transaction_id, status, expected_status=None, **extra) -> bool:
        table = Transaction.__table__
        stmt = update(table).where(table.c.id == transaction_id)
        if expected_status is not None:
            stmt = stmt.where(table.c.status == expected_status)
        result = session.connection().execute(stmt.values(status=status, **extra))
        return result.rowcount == 1

    # -------- Admins --------

    def get_admin_by_username(self, username: str) -> Optional[Admin]:
        with self._session() as session:
            return session.exec(select(Admin).where(Admin.username == username)).first()

    def create_admin(self, admin: Admin) -> Admin:
        return self._insert(admin)

    # -------- Wallet --------

    def get_wallet_transactions(self) -> List[WalletTransaction]:
        with self._session() as session:
            return list(session.exec(
                select(WalletTransaction).order_by(
                    WalletTransaction.created_at.desc(), WalletTransaction.id
                )
            ).all())

    def create_wallet_transaction(self, entry: WalletTransaction) -> WalletTransaction:
        entry.amount = to_money(entry.amount)
        return self._insert(entry)

    # -------- Composite units --------

    def record_purchase(
        self,
        order: Order,
        items: List[OrderItem],
        transaction: Transaction,
        wallet_entry: Optional[WalletTransaction] = None,
    ) -> Tuple[Order, List[OrderItem], Transaction, Optional[WalletTransaction]]:
        order.total_amount = to_money(order.total_amount)
        transaction.amount = to_money(transaction.amount)

        with self._unit() as session:
            session.add(order)
            # parent row first, items and transaction reference it
            session.flush()

            for item in items:
                item.order_id = order.id
                item.price = to_money(item.price)
                session.add(item)

            transaction.order_id = order.id
            session.add(transaction)

            if wallet_entry is not None:
                wallet_entry.amount = to_money(wallet_entry.amount)
                session.add(wallet_entry)

        return order, items, transaction, wallet_entry

    def refund_transaction(
        self, transaction_id: str, description: str
    ) -> Tuple[Transaction, Order, WalletTransaction]:
        with self._unit() as session:
            transaction = session.get(Transaction, transaction_id)
            if not transaction:
                raise NotFoundError("Transaction not found")

            swapped = self._swap_transaction_status(
                session, transaction_id, "refunded", expected_status="completed"
            )
            if not swapped:
                session.refresh(transaction)
                if transaction.status == "refunded":
                    raise ConflictError("Transaction already refunded")
                raise ConflictError(
                    f"Only completed transactions can be refunded (status: {transaction.status})"
                )
            session.refresh(transaction)

            order = session.get(Order, transaction.order_id)
            if not order:
                raise NotFoundError("Order not found")
            order.status = "refunded"
            session.add(order)

            entry = WalletTransaction(
                type="refund_issued",
                amount=to_money(transaction.amount),
                status="completed",
                description=description,
            )
            session.add(entry)

        return transaction, order, entry

    def settle_pending_purchase(
        self,
        transaction_id: str,
        succeeded: bool,
        payment_intent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Tuple[Transaction, Order, Optional[WalletTransaction]]:
        with self._unit() as session:
            transaction = session.get(Transaction, transaction_id)
            if not transaction:
                raise NotFoundError("Transaction not found")

            extra = {}
            if payment_intent_id:
                extra["payment_intent_id"] = payment_intent_id

            target = "completed" if succeeded else "failed"
            swapped = self._swap_transaction_status(
                session, transaction_id, target, expected_status="pending", **extra
            )
            if not swapped:
                session.refresh(transaction)
                raise ConflictError(
                    f"Transaction is no longer pending (status: {transaction.status})"
                )
            session.refresh(transaction)

            order = session.get(Order, transaction.order_id)
            if not order:
                raise NotFoundError("Order not found")

            entry = None
            if succeeded:
                order.status = "completed"
                session.add(order)
                entry = WalletTransaction(
                    type="payment_received",
                    amount=to_money(transaction.amount),
                    status="completed",
                    description=description or f"Payment for order {order.id}",
                )
                session.add(entry)

        return transaction, order, entry

    def transfer_to_bank(self, amount: Decimal, bank_account_info: str) -> WalletTransaction:
        amount = to_money(amount)

        with self._transfer_lock, self._unit() as session:
            balance = fold_wallet_balance(session.exec(select(WalletTransaction)).all())
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
            session.add(entry)

        return entry

    def ping(self) -> bool:
        try:
            with self._session() as session:
                session.exec(text("SELECT 1"))
            return True
        except StoreError:
            logger.exception("Database ping failed")
            return False

    def close(self) -> None:
        self.engine.dispose()


class SqliteStorage(SQLStorage):
    """Embedded-file backend; the schema is created on open."""

    def __init__(self, path: str):
        super().__init__(make_engine(f"sqlite:///{path}"), create_tables=True)
        self.path = path
