"""
cqlmap: maps Python classes to Cassandra tables.

Declare entities as ``Model`` subclasses, then persist them through a
``MappingSession`` wrapping a driver session::

    from cqlmap import Model, MappingSession, fields

    class User(Model):
        id = fields.UUID(primary_key=True)
        name = fields.Text()
        version = fields.Integer(version=True)

    msession = MappingSession(session, keyspace="app")
    msession.save(User(id=uuid.uuid4(), name="ana"))
"""

from .core import fields
from .core.model import Model
from .core.metadata import get_metadata
from .core.session import MappingSession
from .core.connection import connect, connect_async, disconnect, disconnect_async, get_session, get_mapping_session
from .types import WriteOptions, ReadOptions, BatchOptions, BatchExecutor
from ._internal.statement_cache import StatementCache, get_statement_cache, set_statement_cache
from .utils.exceptions import (
    CqlMapError, MappingError, ValidationError, UnsupportedOperationError,
    SchemaSyncError, ConnectionError
)
from .utils.logging import setup_logging
from .utils.config import MappingConfig, load_config

__version__ = "0.1.0"

__all__ = [
    'fields', 'Model', 'get_metadata', 'MappingSession',
    'connect', 'connect_async', 'disconnect', 'disconnect_async', 'get_session', 'get_mapping_session',
    'WriteOptions', 'ReadOptions', 'BatchOptions', 'BatchExecutor',
    'StatementCache', 'get_statement_cache', 'set_statement_cache',
    'CqlMapError', 'MappingError', 'ValidationError', 'UnsupportedOperationError',
    'SchemaSyncError', 'ConnectionError',
    'setup_logging', 'MappingConfig', 'load_config',
    '__version__'
]
