"""
Pytest configuration and fixtures for job_iteration tests.
"""

import os
import sys
import logging
from datetime import datetime, timedelta
from typing import List

import pytest
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

logger = logging.getLogger(__name__)

BASE_TIME = datetime(2024, 1, 1, 10, 0, 0)

metadata = MetaData()

products = Table(
    "products", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(50), nullable=False),
    Column("created_at", DateTime, nullable=False),
)

comments = Table(
    "comments", metadata,
    Column("id", Integer, primary_key=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("content", String(200), nullable=False),
)

memberships = Table(
    "memberships", metadata,
    Column("user_id", Integer, primary_key=True),
    Column("group_id", Integer, primary_key=True),
    Column("role", String(20), nullable=False),
)

events = Table(
    "events", metadata,
    Column("name", String(50)),
)


class Base(DeclarativeBase):
    pass


class Product(Base):
    __table__ = products


def product_created_at(product_id: int) -> datetime:
    """Products are created in pairs, newest ids first: 9 and 10 share the oldest timestamp."""
    return BASE_TIME + timedelta(hours=(10 - product_id) // 2)


# Product ids ordered by (created_at, id)
PRODUCTS_BY_CREATED_AT: List[int] = [9, 10, 7, 8, 5, 6, 3, 4, 1, 2]


def seed(engine) -> None:
    with engine.begin() as conn:
        conn.execute(products.insert(), [
            {"id": i, "name": f"product-{i}", "created_at": product_created_at(i)}
            for i in range(1, 11)
        ])
        conn.execute(comments.insert(), [
            {"id": 1, "product_id": 1, "content": "first"},
            {"id": 2, "product_id": 2, "content": "second"},
            {"id": 3, "product_id": 2, "content": "third"},
            {"id": 4, "product_id": 3, "content": "fourth"},
        ])
        conn.execute(memberships.insert(), [
            {"user_id": 1, "group_id": 1, "role": "owner"},
            {"user_id": 1, "group_id": 2, "role": "member"},
            {"user_id": 2, "group_id": 1, "role": "member"},
            {"user_id": 2, "group_id": 3, "role": "owner"},
            {"user_id": 3, "group_id": 2, "role": "owner"},
            {"user_id": 3, "group_id": 3, "role": "member"},
        ])


@pytest.fixture
def engine():
    """In-memory SQLite engine with seeded tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    seed(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """ORM session bound to the seeded engine."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def query_log(engine):
    """Collects every SELECT statement executed on the engine."""
    statements = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    yield statements
    event.remove(engine, "before_cursor_execute", before_cursor_execute)


@pytest.fixture
def csv_file(tmp_path):
    """CSV file with a header and five data rows."""
    path = tmp_path / "products.csv"
    lines = ["id,name"] + [f"{i},product-{i}" for i in range(1, 6)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
