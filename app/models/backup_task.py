from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import uuid4


class BackupTask(SQLModel, table=True):
    """One statement waiting to be replayed on a secondary database."""

    __tablename__ = "backup_tasks"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    conn: str
    sql: str
    params: Optional[str] = None  # JSON encoded

    attempts: int = Field(default=0)
    last_error: Optional[str] = None
    status: str = Field(default="pending", index=True)  # pending | in_progress | failed | done

    next_try_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    started_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
