import os

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine
from app.config import Settings


def make_engine(url: str):
    if url.startswith("sqlite"):
        path = url.replace("sqlite:///", "", 1)
        if path and path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

        # sqlite ignores foreign keys unless asked per connection
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


def engine_for(settings: Settings):
    return make_engine(settings.database_url)


def create_db_and_tables(engine):
  from app.models import LEDGER_TABLES
  SQLModel.metadata.create_all(engine, tables=LEDGER_TABLES)
