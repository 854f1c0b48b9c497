import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cotify.config import enable_sqlite_foreign_keys
from cotify.models import Base
from cotify.store import TableStore

import factories


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file per test, with FK enforcement"""
    engine = create_engine(f"sqlite:///{tmp_path / 'cotify.db'}")
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def dbsession(session_factory):
    session = session_factory()
    factories.bind(session)
    yield session
    session.close()


@pytest.fixture
def store(session_factory):
    return TableStore(session_factory)
