from decimal import Decimal

import pytest

from app.exceptions import InsufficientFundsError, InvalidRequestError
from app.models.wallet_transaction import WalletTransaction
from app.services.wallet_service import transfer_to_bank, wallet_summary
from app.storage.base import fold_wallet_balance, to_money
from conftest import race


def _entry(type, amount, status="completed"):
    return WalletTransaction(type=type, amount=Decimal(amount), status=status)


def test_balance_fold():
    balance = fold_wallet_balance([
        _entry("payment_received", "100"),
        _entry("transfer_to_bank", "30"),
        _entry("payment_received", "50", status="pending"),
    ])

    assert balance.available_balance == Decimal("70")
    assert balance.pending_balance == Decimal("50")


def test_balance_ignores_failed_and_pending_debits():
    balance = fold_wallet_balance([
        _entry("payment_received", "20"),
        _entry("payment_received", "99", status="failed"),
        _entry("transfer_to_bank", "5", status="pending"),
        _entry("refund_issued", "7.50"),
    ])

    assert balance.available_balance == Decimal("12.50")
    assert balance.pending_balance == Decimal("0")


def test_store_balance_matches_fold(store):
    for entry in (
        _entry("payment_received", "100"),
        _entry("transfer_to_bank", "30"),
        _entry("payment_received", "50", status="pending"),
    ):
        store.create_wallet_transaction(entry)

    balance = store.get_wallet_balance()
    assert balance.available_balance == Decimal("70.00")
    assert balance.pending_balance == Decimal("50.00")


def test_to_money():
    assert to_money("3") == Decimal("3.00")
    assert to_money(0.1 + 0.2) == Decimal("0.30")
    assert to_money(Decimal("2.345")) == Decimal("2.34")


@pytest.mark.parametrize("value", ["abc", "1e30", Decimal("NaN")])
def test_to_money_rejects_unusable_amounts(value):
    with pytest.raises(InvalidRequestError):
        to_money(value)


def test_transfer_within_balance(store):
    store.create_wallet_transaction(_entry("payment_received", "100"))

    entry = transfer_to_bank(store, Decimal("40"), "  DE89 3704 0044  ")

    assert entry.type == "transfer_to_bank"
    assert entry.status == "completed"
    assert entry.bank_account_info == "DE89 3704 0044"
    assert store.get_wallet_balance().available_balance == Decimal("60.00")


def test_transfer_above_available_is_rejected(store):
    store.create_wallet_transaction(_entry("payment_received", "100"))
    store.create_wallet_transaction(_entry("payment_received", "500", status="pending"))

    with pytest.raises(InsufficientFundsError) as exc:
        transfer_to_bank(store, Decimal("100.01"), "acct-1")

    assert "Available: $100.00" in str(exc.value)
    assert store.get_wallet_balance().available_balance == Decimal("100.00")
    assert len(store.get_wallet_transactions()) == 2


@pytest.mark.parametrize("amount, account", [
    (Decimal("0"), "acct-1"),
    (Decimal("-5"), "acct-1"),
    (Decimal("0.001"), "acct-1"),
    (Decimal("1e30"), "acct-1"),
    (None, "acct-1"),
    (Decimal("10"), "   "),
])
def test_transfer_input_is_validated(memory_store, amount, account):
    memory_store.create_wallet_transaction(_entry("payment_received", "100"))

    with pytest.raises(InvalidRequestError):
        transfer_to_bank(memory_store, amount, account)

    assert len(memory_store.get_wallet_transactions()) == 1


def test_wallet_summary(memory_store):
    memory_store.create_wallet_transaction(_entry("payment_received", "12.5"))

    summary = wallet_summary(memory_store)

    assert summary["availableBalance"] == Decimal("12.50")
    assert summary["pendingBalance"] == Decimal("0.00")
    assert len(summary["transactions"]) == 1


def test_concurrent_transfers_never_overdraw(store):
    store.create_wallet_transaction(_entry("payment_received", "100"))

    outcomes = race(lambda: transfer_to_bank(store, Decimal("30"), "acct-1"))

    done = [o for o in outcomes if isinstance(o, WalletTransaction)]
    rejected = [o for o in outcomes if isinstance(o, InsufficientFundsError)]
    assert len(done) == 3
    assert len(rejected) == 5
    assert store.get_wallet_balance().available_balance == Decimal("10.00")
