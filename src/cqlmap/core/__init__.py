"""
Core functionality for cqlmap.

This module contains the entity model, field types, metadata registry and
the mapping session used to persist entities in Cassandra.
"""

from .fields import (
    BaseField, Text, Ascii, Integer, BigInt, Float, Double, Decimal, Boolean,
    UUID, TimeUUID, Timestamp, Date, Blob, List, Set, Map
)
from .model import Model
from .metadata import EntityTypeMetadata, FieldMetadata, EntityMetadataRegistry, get_metadata
from .session import MappingSession
from .connection import ConnectionManager, connect, disconnect, get_session, get_mapping_session

__all__ = [
    'Model',
    'BaseField', 'Text', 'Ascii', 'Integer', 'BigInt', 'Float', 'Double', 'Decimal', 'Boolean',
    'UUID', 'TimeUUID', 'Timestamp', 'Date', 'Blob', 'List', 'Set', 'Map',
    'EntityTypeMetadata', 'FieldMetadata', 'EntityMetadataRegistry', 'get_metadata',
    'MappingSession',
    'ConnectionManager', 'connect', 'disconnect', 'get_session', 'get_mapping_session'
]
