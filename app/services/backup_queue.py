import json
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import literal_column, update
from sqlmodel import Session, SQLModel, select

from app.database import make_engine
from app.models.backup_task import BackupTask

logger = logging.getLogger(__name__)

# insertion order breaks created_at ties; the queue file is always sqlite
_ROWID = literal_column("rowid")


class BackupQueue:
    """
    Durable retry log of statements to replay on secondary databases.

    Rows live in their own SQLite file so a primary outage does not take the
    log down with it. Delivery is at-least-once and advisory: two tasks for
    the same row can replay out of order while the older one is backing off.
    """

    def __init__(self, engine, clock: Callable[[], datetime] = datetime.utcnow):
        self.engine = engine
        self.clock = clock
        SQLModel.metadata.create_all(engine, tables=[BackupTask.__table__])

    @classmethod
    def from_path(cls, path: str, clock: Callable[[], datetime] = datetime.utcnow):
        return cls(make_engine(f"sqlite:///{path}"), clock=clock)

    def enqueue(self, conn: str, sql: str, params: Optional[Dict[str, Any]] = None) -> str:
        now = self.clock()
        task = BackupTask(
            conn=conn,
            sql=sql,
            params=json.dumps(params or {}),
            attempts=0,
            status="pending",
            next_try_at=now,
            created_at=now,
        )

        with Session(self.engine, expire_on_commit=False) as session:
            session.add(task)
            session.commit()

        return task.id

    def get(self, task_id: str) -> Optional[BackupTask]:
        with Session(self.engine) as session:
            return session.get(BackupTask, task_id)

    def list(self, limit: int = 100) -> List[Dict[str, Any]]:
        with Session(self.engine) as session:
            tasks = session.exec(
                select(BackupTask).order_by(BackupTask.created_at.desc(), _ROWID.desc()).limit(limit)
            ).all()

        return [
            {**task.model_dump(), "params": json.loads(task.params) if task.params else {}}
            for task in tasks
        ]

    def pick_due(self, limit: int = 5) -> List[BackupTask]:
        now = self.clock()
        with Session(self.engine) as session:
            return list(session.exec(
                select(BackupTask)
                .where(BackupTask.status.in_(["pending", "failed"]))
                .where(BackupTask.next_try_at <= now)
                .order_by(BackupTask.created_at.asc(), _ROWID.asc())
                .limit(limit)
            ).all())

    def _update(self, task_id: str, *conditions, **values) -> int:
        table = BackupTask.__table__
        stmt = update(table).where(table.c.id == task_id)
        for condition in conditions:
            stmt = stmt.where(condition)

        with Session(self.engine) as session:
            result = session.connection().execute(stmt.values(**values))
            session.commit()
            return result.rowcount

    def mark_in_progress(self, task_id: str) -> bool:
        table = BackupTask.__table__
        return self._update(
            task_id,
            table.c.status.in_(["pending", "failed"]),
            status="in_progress",
            started_at=self.clock(),
        ) == 1

    def mark_done(self, task_id: str) -> None:
        self._update(task_id, status="done")

    def mark_failed(self, task_id: str, attempts: int, error: str, next_try_at: datetime) -> None:
        self._update(
            task_id,
            attempts=attempts,
            last_error=error,
            status="failed",
            next_try_at=next_try_at,
        )

    def recover_stale(self, grace_seconds: int) -> int:
        """Put in_progress tasks whose lease expired back to pending."""
        cutoff = self.clock() - timedelta(seconds=grace_seconds)
        table = BackupTask.__table__

        with Session(self.engine) as session:
            result = session.connection().execute(
                update(table)
                .where(table.c.status == "in_progress")
                .where(table.c.started_at < cutoff)
                .values(status="pending")
            )
            session.commit()

        if result.rowcount:
            logger.warning(f"Recovered {result.rowcount} stale backup tasks")
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()
