from datetime import timedelta
from decimal import Decimal

import pytest

from app.jobs.backup_worker import BackupWorker, backoff_seconds, execute_statement
from app.models.book import Book
from app.services.backup_queue import BackupQueue
from app.storage.memory import MemoryStorage
from app.storage.replicated import ReplicatedStorage
from app.storage.sql import SqliteStorage
from app.storage.statements import delete_statement, insert_statement, status_statement
from conftest import make_book


@pytest.fixture
def queue(tmp_path, clock):
    q = BackupQueue.from_path(str(tmp_path / "queue.sqlite"), clock=clock)
    yield q
    q.close()


class FlakyExecutor:
    def __init__(self, failures):
        self.failures = failures
        self.calls = []

    def __call__(self, conn, sql, params):
        self.calls.append((conn, sql, params))
        if len(self.calls) <= self.failures:
            raise RuntimeError("connection refused")


def test_backoff_is_capped():
    assert [backoff_seconds(n) for n in (1, 2, 3)] == [2, 4, 8]
    assert backoff_seconds(20) == 3600


def test_enqueue_defaults(queue, clock):
    task_id = queue.enqueue("postgresql://backup", "DELETE FROM books WHERE id = :id", {"id": "b1"})

    task = queue.get(task_id)
    assert task.status == "pending"
    assert task.attempts == 0
    assert task.next_try_at == clock.now
    assert queue.list()[0]["params"] == {"id": "b1"}


def test_two_failures_then_success(queue, clock):
    executor = FlakyExecutor(failures=2)
    worker = BackupWorker(queue, executor=executor)
    task_id = queue.enqueue("sqlite:///target.db", "SELECT 1", {})

    assert worker.run_once() == 1
    task = queue.get(task_id)
    assert task.status == "failed"
    assert task.attempts == 1
    assert task.last_error == "connection refused"

    # not due yet
    assert worker.run_once() == 0

    clock.advance(2)
    assert worker.run_once() == 1
    task = queue.get(task_id)
    assert task.attempts == 2
    delay = task.next_try_at - clock.now
    assert timedelta(seconds=4) <= delay < timedelta(seconds=8)

    clock.advance(4)
    assert worker.run_once() == 1

    task = queue.get(task_id)
    assert task.status == "done"
    assert task.attempts == 2
    assert len(executor.calls) == 3
    assert queue.pick_due() == []


def test_batch_size_and_oldest_first(queue, clock):
    ids = []
    for n in range(7):
        ids.append(queue.enqueue("sqlite:///t.db", f"SELECT {n}", {}))
        clock.advance(1)

    due = queue.pick_due(limit=5)
    assert [t.id for t in due] == ids[:5]


def test_task_is_claimed_once(queue):
    task_id = queue.enqueue("sqlite:///t.db", "SELECT 1", {})

    assert queue.mark_in_progress(task_id) is True
    assert queue.mark_in_progress(task_id) is False
    assert queue.pick_due() == []


def test_stale_in_progress_tasks_are_recovered(queue, clock):
    task_id = queue.enqueue("sqlite:///t.db", "SELECT 1", {})
    queue.mark_in_progress(task_id)

    clock.advance(60)
    assert queue.recover_stale(300) == 0

    clock.advance(300)
    assert queue.recover_stale(300) == 1
    assert queue.get(task_id).status == "pending"


def test_statements_use_named_parameters():
    book = Book(
        id="b1",
        title="T",
        description="D",
        price=Decimal("9.50"),
        cover_image="https://x/c.jpg",
        download_url="https://x/f.pdf",
        category="C",
    )

    sql, params = insert_statement(book)
    assert sql.startswith("INSERT INTO books")
    assert ":title" in sql
    assert params["price"] == "9.50"
    assert isinstance(params["created_at"], str)

    sql, params = status_statement(Book, "b1", title="New")
    assert sql.startswith("UPDATE books")
    assert "New" in params.values()

    sql, params = delete_statement(Book, "b1")
    assert sql.startswith("DELETE FROM books")
    assert "b1" in params.values()


def test_replicated_writes_are_enqueued_per_target(queue):
    store = ReplicatedStorage(MemoryStorage(), queue, ["sqlite:///a.db", "sqlite:///b.db"])

    book = make_book(store)
    store.update_book(book.id, {"title": "Renamed"})

    tasks = queue.list()
    assert len(tasks) == 4
    assert {t["conn"] for t in tasks} == {"sqlite:///a.db", "sqlite:///b.db"}
    assert sum(t["sql"].startswith("INSERT INTO books") for t in tasks) == 2


def test_enqueue_failure_does_not_fail_the_write(queue, caplog):
    class DeadQueue:
        def enqueue(self, *args, **kwargs):
            raise OSError("disk full")

    store = ReplicatedStorage(MemoryStorage(), DeadQueue(), ["sqlite:///a.db"])

    book = make_book(store)

    assert store.get_book(book.id) is not None
    assert "Could not enqueue backup statement" in caplog.text


def test_replay_reaches_the_backup_database(tmp_path, queue):
    target_path = tmp_path / "backup.sqlite"
    target = SqliteStorage(str(target_path))
    conn = f"sqlite:///{target_path}"

    primary = ReplicatedStorage(MemoryStorage(), queue, [conn])
    book = make_book(primary, title="Mirrored", price="19.90")
    primary.update_book(book.id, {"price": Decimal("21")})

    worker = BackupWorker(queue, executor=execute_statement)
    assert worker.run_once() == 2

    mirrored = target.get_book(book.id)
    assert mirrored.title == "Mirrored"
    assert mirrored.price == Decimal("21.00")
    assert all(t["status"] == "done" for t in queue.list())
    target.close()
