from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.transaction import Transaction
from app.models.wallet_transaction import WalletTransaction
from app.models.admin import Admin
from app.models.backup_task import BackupTask

# tables living in the primary database; backup_tasks has its own file
LEDGER_TABLES = [
    Book.__table__,
    Order.__table__,
    OrderItem.__table__,
    Transaction.__table__,
    WalletTransaction.__table__,
    Admin.__table__,
]
