"""
Helpers for introspecting and executing SQLAlchemy select statements.

A "bind" is anything that can execute a statement: an Engine, a Connection or
an ORM Session.
"""

from typing import Any, List, Optional, Sequence, Union

from dateutil import parser as date_parser
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.sql import sqltypes
from sqlalchemy.sql.selectable import Join, Select

from ..models import ConfigurationError, CursorError

ColumnSpec = Union[str, Any]


def has_order_or_limit(statement: Select) -> bool:
    """Check whether a statement already carries ORDER BY, LIMIT or OFFSET."""
    return bool(
        getattr(statement, '_order_by_clauses', ())
        or getattr(statement, '_limit_clause', None) is not None
        or getattr(statement, '_offset_clause', None) is not None
    )


def iter_tables(froms) -> List[Any]:
    """Flatten FROM clauses, descending into joins, left to right."""
    tables = []
    for from_ in froms:
        if isinstance(from_, Join):
            tables.extend(iter_tables([from_.left, from_.right]))
        else:
            tables.append(from_)
    return tables


def has_joins(statement: Select) -> bool:
    froms = statement.get_final_froms()
    return len(froms) > 1 or any(isinstance(from_, Join) for from_ in froms)


def is_entity_select(statement: Select) -> bool:
    """Check whether a statement selects exactly one ORM entity, e.g. select(User)."""
    descriptions = getattr(statement, 'column_descriptions', None) or []
    if len(descriptions) != 1:
        return False
    entity = descriptions[0].get('entity')
    return entity is not None and descriptions[0].get('expr') is entity


def resolve_column(statement: Select, column: ColumnSpec):
    """
    Resolve a column name, ORM attribute or column object against a statement.

    Args:
        statement: Statement the column belongs to
        column: Column object, ORM attribute, "name" or "table.name"

    Returns:
        SQL column expression

    Raises:
        ConfigurationError: If the column cannot be found or is ambiguous
    """
    if not isinstance(column, str):
        if hasattr(column, '__clause_element__'):
            return column.__clause_element__()
        return column

    tables = iter_tables(statement.get_final_froms())
    if '.' in column:
        table_name, column_name = column.rsplit('.', 1)
        for table in tables:
            if getattr(table, 'name', None) == table_name and column_name in table.c:
                return table.c[column_name]
        raise ConfigurationError(f"Unknown column {column!r}")

    if has_joins(statement):
        raise ConfigurationError(
            f"You need to specify fully-qualified columns if you join a table (got {column!r})"
        )
    for table in tables:
        if column in table.c:
            return table.c[column]
    raise ConfigurationError(f"Unknown column {column!r}")


def resolve_columns(statement: Select, columns: Optional[Sequence[ColumnSpec]]) -> List[Any]:
    """
    Resolve the ordering key for a statement, defaulting to the primary key.

    Raises:
        ConfigurationError: If no ordering column can be determined
    """
    if columns is None:
        resolved = primary_key_columns(statement)
    else:
        if isinstance(columns, (str, bytes)) or not isinstance(columns, (list, tuple)):
            columns = [columns]
        resolved = [resolve_column(statement, column) for column in columns]

    if not resolved:
        raise ConfigurationError("Must specify at least one column")
    return resolved


def primary_key_columns(statement: Select) -> List[Any]:
    """Return the primary key columns of the first table in the statement's FROM list."""
    for table in iter_tables(statement.get_final_froms()):
        primary_key = getattr(table, 'primary_key', None)
        if primary_key is not None and len(primary_key.columns) > 0:
            return list(primary_key.columns)
    return []


def coerce_position_value(column, value: Any) -> Any:
    """
    Convert a persisted cursor component back into a bindable value.

    Datetime and date columns are emitted as strings in cursors; they are parsed
    back so the column's type accepts them.

    Raises:
        CursorError: If a string cannot be parsed for a datetime or date column
    """
    if not isinstance(value, str):
        return value

    column_type = getattr(column, 'type', None)
    try:
        if isinstance(column_type, sqltypes.DateTime):
            return date_parser.isoparse(value)
        if isinstance(column_type, sqltypes.Date):
            return date_parser.isoparse(value).date()
    except ValueError as e:
        raise CursorError(f"Cannot parse cursor component for {column}: {e}", cursor=value) from e
    return value


def fetch_rows(bind, statement) -> list:
    """Execute a statement and return all result rows."""
    if isinstance(bind, Engine):
        with bind.connect() as connection:
            return connection.execute(statement).all()
    return bind.execute(statement).all()


def count_rows(bind, statement: Select) -> int:
    """Return the raw row count of a statement."""
    count_statement = select(func.count()).select_from(statement.subquery())
    if isinstance(bind, Engine):
        with bind.connect() as connection:
            return connection.execute(count_statement).scalar_one()
    return bind.execute(count_statement).scalar_one()


def execute_write(bind, statement) -> int:
    """
    Execute a data-modifying statement and return the affected row count.

    Engines run the statement in their own transaction; Connections and
    Sessions leave committing to the caller.
    """
    if isinstance(bind, Engine):
        with bind.begin() as connection:
            return connection.execute(statement).rowcount
    return bind.execute(statement).rowcount
