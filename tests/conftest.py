import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.models.book import Book
from app.schemas.payment_schemas import ChargeResult
from app.storage.memory import MemoryStorage
from app.storage.sql import SqliteStorage


class FakeGateway:
    """Records every charge and answers with a fixed result."""

    def __init__(self, result=None):
        self.result = result or ChargeResult(success=True, transaction_id="gw_txn_1")
        self.requests = []

    def charge(self, request):
        self.requests.append(request)
        return self.result


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def race(fn, threads=8):
    """Run fn on several threads at once; returns each result or raised error."""
    barrier = threading.Barrier(threads)

    def run():
        barrier.wait()
        try:
            return fn()
        except Exception as e:
            return e

    with ThreadPoolExecutor(max_workers=threads) as pool:
        futures = [pool.submit(run) for _ in range(threads)]
        return [f.result() for f in futures]


def make_book(store, title="Clean Architecture", price="29.99", **overrides):
    fields = dict(
        title=title,
        description="A practical guide",
        price=Decimal(price),
        cover_image="https://cdn.example.com/covers/book.jpg",
        download_url="https://cdn.example.com/files/book.pdf",
        category="Programming",
    )
    fields.update(overrides)
    return store.create_book(Book(**fields))


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        backend = MemoryStorage()
    else:
        backend = SqliteStorage(str(tmp_path / "ledger.sqlite"))

    yield backend
    backend.close()


@pytest.fixture
def memory_store():
    return MemoryStorage()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return FakeClock()
