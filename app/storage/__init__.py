from app.storage.base import LedgerStore, WalletBalance, fold_wallet_balance, to_money
from app.storage.memory import MemoryStorage
from app.storage.sql import SQLStorage, SqliteStorage
from app.storage.replicated import ReplicatedStorage
from app.storage.factory import build_storage
