"""
Shared pytest fixtures: in-memory database, eager Celery, audit fixtures.
"""

import os
from typing import Any, Dict, Generator

import pytest
from celery import Celery
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SQLITE_PATH", ":memory:")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")


# Fixture for the Celery app for testing
@pytest.fixture(scope="module")
def celery_app_fixture() -> Celery:
    from celery_worker import celery_app

    celery_app.conf.update(task_always_eager=True)
    return celery_app


# Fixture for an in-memory SQLite database for testing
@pytest.fixture(scope="session")
def db_engine() -> Generator:
    """Yield a SQLAlchemy engine for an in-memory SQLite database."""
    from app.db.base import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite SAVEPOINT recipe: let SQLAlchemy own BEGIN so that
    # per-test transactions (with nested savepoints) actually roll back.
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine: Engine) -> Generator:
    """Yield a database session for a single test function."""
    connection = db_engine.connect()
    transaction = connection.begin()
    session_local = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=connection,
        join_transaction_mode="create_savepoint",
    )
    session = session_local()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def raw_audit() -> Dict[str, Any]:
    """Dashboard-shaped audit record with issues in several categories."""
    return {
        "id": "audit-1",
        "url": "https://www.example.com",
        "created_at": "2026-03-14T09:30:00Z",
        "projects": {"name": "Example Shop", "url": "https://www.example.com"},
        "report": {
            "score": {
                "overall": 72,
                "categories": {"onPageSeo": 80, "performance": 55, "usability": 90},
            },
            "pageSpeed": {
                "mobile": {"performance": 0.42, "fcp": 2100, "lcp": 4100, "cls": 0.12, "tbt": 320},
                "desktop": {"performance": 88, "fcp": 900, "lcp": 1500, "cls": 0.02, "tbt": 40},
            },
            "issues": {
                "metaDescription": [
                    {"title": "Missing meta description", "severity": "high", "url": "/a"},
                    {"title": "Duplicate meta description", "priority": "medium"},
                ],
                "titleTags": [{"title": "Title too long", "severity": "low"}],
                "images": [{"title": "Image without alt text", "severity": "info"}],
                "schemaMarkup": [],
            },
            "mozData": {"domainAuthority": 24, "linkingDomains": 130},
            "keywords": {"found": ["shoes", "boots"], "suggested": ["sneakers"]},
        },
    }


@pytest.fixture
def snapshot(raw_audit):
    from app.reports.snapshot import AuditSnapshot

    return AuditSnapshot.from_dict(raw_audit)
