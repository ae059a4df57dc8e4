from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy.engine import default

# named placeholders (":title") so the queue can replay the text on any engine
_dialect = default.DefaultDialect(paramstyle="named")

Statement = Tuple[str, Dict[str, Any]]


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _compile(stmt) -> Statement:
    compiled = stmt.compile(dialect=_dialect)
    params = {key: _encode(value) for key, value in compiled.params.items()}
    return str(compiled), params


def insert_statement(obj) -> Statement:
    table = type(obj).__table__
    row = {column.name: getattr(obj, column.name) for column in table.columns}
    return _compile(table.insert().values(**row))


def update_statement(obj, columns: Optional[Iterable[str]] = None) -> Statement:
    table = type(obj).__table__
    if columns is None:
        columns = [c.name for c in table.columns if c.name != "id"]
    values = {name: getattr(obj, name) for name in columns}
    return _compile(table.update().where(table.c.id == obj.id).values(**values))


def status_statement(model, row_id: str, **values) -> Statement:
    table = model.__table__
    return _compile(table.update().where(table.c.id == row_id).values(**values))


def delete_statement(model, row_id: str) -> Statement:
    table = model.__table__
    return _compile(table.delete().where(table.c.id == row_id))
