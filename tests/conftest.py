import pytest
from unittest.mock import patch

from cqlmap._internal.statement_cache import StatementCache
from cqlmap.core.metadata import EntityMetadataRegistry
from cqlmap.core.session import MappingSession

from tests.fakes import FakeBatchStatement, FakeSession


@pytest.fixture
def registry():
    """Registro isolado: o estado de sincronização não vaza entre testes."""
    return EntityMetadataRegistry()


@pytest.fixture
def statement_cache():
    return StatementCache(max_size=100)


@pytest.fixture
def session():
    return FakeSession(keyspace="app")


@pytest.fixture
def msession(session, registry, statement_cache):
    return MappingSession(session, keyspace="app", registry=registry, statement_cache=statement_cache)


@pytest.fixture(autouse=True)
def fake_batch_statement():
    with patch("cqlmap.types.batch.BatchStatement", FakeBatchStatement):
        yield
