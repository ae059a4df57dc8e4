import logging
from decimal import Decimal

from app.exceptions import InvalidRequestError
from app.models.wallet_transaction import WalletTransaction
from app.storage.base import LedgerStore, to_money

logger = logging.getLogger(__name__)


def wallet_summary(store: LedgerStore) -> dict:
    balance = store.get_wallet_balance()
    return {
        "availableBalance": balance.available_balance,
        "pendingBalance": balance.pending_balance,
        "transactions": store.get_wallet_transactions(),
    }


def transfer_to_bank(store: LedgerStore, amount: Decimal, bank_account_info: str) -> WalletTransaction:
    if amount is None or not bank_account_info or not bank_account_info.strip():
        raise InvalidRequestError("Amount and bank account info are required")

    amount = to_money(amount)
    if amount <= 0:
        raise InvalidRequestError("Amount must be a positive number")

    entry = store.transfer_to_bank(amount, bank_account_info.strip())
    logger.info(f"Transferred {entry.amount} to bank")
    return entry
