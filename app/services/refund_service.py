import logging
from typing import Tuple

from app.models.order import Order
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from app.storage.base import LedgerStore

logger = logging.getLogger(__name__)


def refund_transaction(
    *,
    store: LedgerStore,
    transaction_id: str,
) -> Tuple[Transaction, Order, WalletTransaction]:
    """
    completed -> refunded on the transaction, refunded on its order and a
    refund_issued wallet entry, as one unit. The store only flips a
    transaction that is still completed, so a concurrent second refund gets
    ConflictError instead of a second wallet entry.
    """
    transaction, order, entry = store.refund_transaction(
        transaction_id,
        description=f"Refund for transaction {transaction_id}",
    )

    logger.info(f"Refunded transaction {transaction.id} ({transaction.amount}) for order {order.id}")
    return transaction, order, entry
