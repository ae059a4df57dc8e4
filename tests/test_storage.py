from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.exceptions import ConflictError, InvalidRequestError, NotFoundError, StoreError
from app.models.admin import Admin
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from conftest import make_book


def _pending_purchase(store, book, amount="29.99"):
    order = Order(customer_email="reader@example.com", total_amount=Decimal(amount))
    items = [OrderItem(book_id=book.id, quantity=1, price=Decimal(amount))]
    transaction = Transaction(
        order_id=order.id, amount=Decimal(amount), payment_method="visa", status="pending"
    )
    order, _, transaction, _ = store.record_purchase(order, items, transaction)
    return order, transaction


# -------- Books --------

def test_create_book_normalizes_price(store):
    book = make_book(store, price="10")
    assert store.get_book(book.id).price == Decimal("10.00")

    rounded = make_book(store, title="Rounded", price="19.999")
    assert store.get_book(rounded.id).price == Decimal("20.00")


def test_default_timestamps_are_persisted(store):
    book = make_book(store)
    order, transaction = _pending_purchase(store, book)

    assert store.get_book(book.id).created_at == book.created_at
    assert store.get_order(order.id).created_at == order.created_at
    assert store.get_transaction(transaction.id).created_at == transaction.created_at


def test_books_are_listed_newest_first(store):
    now = datetime(2026, 3, 1)
    old = make_book(store, title="Old", created_at=now - timedelta(days=2))
    new = make_book(store, title="New", created_at=now)
    middle = make_book(store, title="Middle", created_at=now - timedelta(days=1))

    assert [b.id for b in store.get_books()] == [new.id, middle.id, old.id]


def test_reads_are_idempotent(store):
    make_book(store, title="One")
    make_book(store, title="Two")
    store.create_wallet_transaction(
        WalletTransaction(type="payment_received", amount=Decimal("5"), status="completed")
    )

    assert [b.id for b in store.get_books()] == [b.id for b in store.get_books()]
    first = [(w.id, w.amount) for w in store.get_wallet_transactions()]
    assert first == [(w.id, w.amount) for w in store.get_wallet_transactions()]


def test_update_book_changes_only_given_fields(store):
    book = make_book(store)

    updated = store.update_book(book.id, {"title": "Second Edition", "price": Decimal("35.5")})

    assert updated.title == "Second Edition"
    assert updated.price == Decimal("35.50")
    assert updated.category == "Programming"
    assert store.get_book(book.id).title == "Second Edition"


def test_failed_update_leaves_book_untouched(store):
    book = make_book(store, title="First Edition", price="20.00")

    with pytest.raises(InvalidRequestError):
        store.update_book(book.id, {"title": "Second Edition", "price": "not a price"})

    stored = store.get_book(book.id)
    assert stored.title == "First Edition"
    assert stored.price == Decimal("20.00")


def test_update_missing_book_returns_none(store):
    assert store.update_book("missing", {"title": "x"}) is None


def test_delete_book(store):
    book = make_book(store)
    store.delete_book(book.id)
    assert store.get_book(book.id) is None


def test_deleting_a_purchased_book_is_a_constraint_violation(store):
    book = make_book(store)
    _pending_purchase(store, book)

    with pytest.raises(StoreError):
        store.delete_book(book.id)

    assert store.get_book(book.id) is not None


# -------- Orders, items, transactions --------

def test_order_item_requires_existing_order(store):
    book = make_book(store)
    with pytest.raises(StoreError):
        store.create_order_item(
            OrderItem(order_id="nope", book_id=book.id, quantity=1, price=Decimal("1"))
        )


def test_order_item_requires_positive_quantity(store):
    book = make_book(store)
    order = store.create_order(Order(customer_email="a@example.com", total_amount=Decimal("1")))

    with pytest.raises(StoreError):
        store.create_order_item(
            OrderItem(order_id=order.id, book_id=book.id, quantity=0, price=Decimal("1"))
        )


def test_single_row_order_operations(store):
    book = make_book(store)
    order = store.create_order(Order(customer_email="a@example.com", total_amount=Decimal("29.99")))
    store.create_order_item(
        OrderItem(order_id=order.id, book_id=book.id, quantity=2, price=Decimal("14.995"))
    )

    store.update_order_status(order.id, "completed")

    assert store.get_order(order.id).status == "completed"
    items = store.get_order_items(order.id)
    assert len(items) == 1
    assert items[0].quantity == 2
    assert items[0].price == Decimal("15.00")


def test_transaction_status_compare_and_set(store):
    book = make_book(store)
    _, transaction = _pending_purchase(store, book)

    assert store.update_transaction_status(transaction.id, "completed", expected_status="failed") is False
    assert store.get_transaction(transaction.id).status == "pending"

    assert store.update_transaction_status(transaction.id, "completed", expected_status="pending") is True
    assert store.get_transaction(transaction.id).status == "completed"


def test_lookup_by_payment_intent(store):
    book = make_book(store)
    order = Order(customer_email="a@example.com", total_amount=Decimal("29.99"))
    transaction = Transaction(
        order_id=order.id,
        amount=Decimal("29.99"),
        payment_method="mastercard",
        payment_intent_id="sess_abc",
    )
    store.record_purchase(order, [OrderItem(book_id=book.id, price=Decimal("29.99"))], transaction)

    found = store.get_transaction_by_payment_intent("sess_abc")
    assert found.id == transaction.id
    assert store.get_transaction_by_payment_intent("sess_other") is None


def test_record_purchase_writes_nothing_on_failure(store):
    book = make_book(store)
    order = Order(customer_email="a@example.com", total_amount=Decimal("59.98"))
    items = [
        OrderItem(book_id=book.id, quantity=1, price=Decimal("29.99")),
        OrderItem(book_id="no-such-book", quantity=1, price=Decimal("29.99")),
    ]
    transaction = Transaction(order_id=order.id, amount=Decimal("59.98"), payment_method="visa")
    entry = WalletTransaction(type="payment_received", amount=Decimal("59.98"), status="completed")

    with pytest.raises(StoreError):
        store.record_purchase(order, items, transaction, entry)

    assert store.get_orders() == []
    assert store.get_transactions() == []
    assert store.get_wallet_transactions() == []


def test_settle_pending_purchase_success(store):
    book = make_book(store)
    order, transaction = _pending_purchase(store, book)

    settled, settled_order, entry = store.settle_pending_purchase(
        transaction.id, succeeded=True, payment_intent_id="gw_1"
    )

    assert settled.status == "completed"
    assert settled.payment_intent_id == "gw_1"
    assert settled_order.status == "completed"
    assert entry.type == "payment_received"
    assert entry.amount == Decimal("29.99")
    assert store.get_wallet_balance().available_balance == Decimal("29.99")


def test_settle_pending_purchase_failure_keeps_order_pending(store):
    book = make_book(store)
    order, transaction = _pending_purchase(store, book)

    settled, settled_order, entry = store.settle_pending_purchase(transaction.id, succeeded=False)

    assert settled.status == "failed"
    assert settled_order.status == "pending"
    assert entry is None
    assert store.get_wallet_transactions() == []

    with pytest.raises(ConflictError):
        store.settle_pending_purchase(transaction.id, succeeded=True)


def test_settle_unknown_transaction(store):
    with pytest.raises(NotFoundError):
        store.settle_pending_purchase("missing", succeeded=True)


# -------- Admins --------

def test_admin_username_is_unique(store):
    store.create_admin(Admin(username="root", password="hash"))

    assert store.get_admin_by_username("root").username == "root"
    assert store.get_admin_by_username("nobody") is None
    with pytest.raises(StoreError):
        store.create_admin(Admin(username="root", password="other"))


def test_ping(store):
    assert store.ping() is True
