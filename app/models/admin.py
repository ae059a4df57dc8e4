from sqlmodel import SQLModel, Field
from datetime import datetime
from uuid import uuid4


class Admin(SQLModel, table=True):
    __tablename__ = "admins"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    username: str = Field(unique=True, index=True)
    password: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
