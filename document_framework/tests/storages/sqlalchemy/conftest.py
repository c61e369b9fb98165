from typing import Generator

import pytest
from _pytest.fixtures import SubRequest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from document_framework.metadata import MetadataRegistry
from document_framework.storages.sqlalchemy import SqlAlchemyPersister
from document_framework.storages.sqlalchemy.registry import SaRegistry
from document_framework.store import Store


@pytest.fixture()
def engine(request: SubRequest) -> Engine:
    connection_url = request.config.getoption("--sqlalchemy-url", default="sqlite://")
    assert connection_url, "You have to define --sqlalchemy-url cmd line option!"
    return create_engine(connection_url)


@pytest.fixture()
def sa_base() -> DeclarativeMeta:
    return declarative_base()


@pytest.fixture()
def session(sa_base: DeclarativeMeta, engine: Engine) -> Generator[Session, None, None]:
    session_factory = sessionmaker(engine)
    session = session_factory()
    yield session
    session.close()
    sa_base.metadata.drop_all(engine)


@pytest.fixture()
def sa_persister(session: Session, sa_base: DeclarativeMeta) -> SqlAlchemyPersister:
    return SqlAlchemyPersister(session, sa_base, SaRegistry(), key="main")


@pytest.fixture()
def sa_store(registry: MetadataRegistry, sa_persister: SqlAlchemyPersister) -> Store:
    for metadata in registry.get_all_metadata():
        sa_persister.create_schemata(metadata)
    return Store(registry, [sa_persister])
