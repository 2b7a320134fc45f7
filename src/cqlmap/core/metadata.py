# cqlmap/core/metadata.py

"""
Metadados de entidade: layout de tabela/colunas, chave primária, campo de
versão e campos indexados, derivados uma única vez por classe.
"""

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type

from ..utils.exceptions import MappingError
from .fields import BaseField, Integer

logger = logging.getLogger(__name__)


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    LIST = "list"
    SET = "set"
    MAP = "map"

    @classmethod
    def of(cls, field_obj: BaseField) -> "FieldKind":
        if field_obj.collection_type is None:
            return cls.SCALAR
        return cls(field_obj.collection_type)


@dataclass(frozen=True)
class FieldMetadata:
    name: str
    column_name: str
    field: BaseField
    cql_type: str
    kind: FieldKind
    primary_key: bool = False
    version: bool = False
    index: bool = False

    @property
    def is_collection(self) -> bool:
        return self.kind is not FieldKind.SCALAR

    def get_value(self, entity: Any) -> Any:
        return entity.__dict__.get(self.name)

    def set_value(self, entity: Any, value: Any) -> None:
        setattr(entity, self.name, value)


@dataclass(eq=False)
class EntityTypeMetadata:
    """
    Descrição de uma classe de entidade.

    Imutável depois de construída, exceto pela flag ``synced``.
    """

    entity_class: Type[Any]
    table_name: str
    fields: Tuple[FieldMetadata, ...]
    primary_key: FieldMetadata
    keyspace: Optional[str] = None
    version_field: Optional[FieldMetadata] = None
    _by_name: Dict[str, FieldMetadata] = field(default_factory=dict, init=False, repr=False)
    _synced: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        self._by_name = {f.name: f for f in self.fields}

    @property
    def has_version(self) -> bool:
        return self.version_field is not None

    @property
    def indexed_fields(self) -> Tuple[FieldMetadata, ...]:
        return tuple(f for f in self.fields if f.index)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(f.column_name for f in self.fields)

    def field(self, property_name: str) -> FieldMetadata:
        try:
            return self._by_name[property_name]
        except KeyError:
            raise MappingError(
                f"Propriedade '{property_name}' não existe em {self.entity_class.__name__}"
            ) from None

    def keyspace_for(self, default_keyspace: Optional[str]) -> Optional[str]:
        return self.keyspace or default_keyspace

    def qualified_table(self, default_keyspace: Optional[str] = None) -> str:
        keyspace = self.keyspace_for(default_keyspace)
        if keyspace:
            return f"{keyspace}.{self.table_name}"
        return self.table_name

    @property
    def synced(self) -> bool:
        return self._synced

    def mark_synced(self) -> None:
        self._synced = True

    def reset_synced(self) -> None:
        self._synced = False

    def __eq__(self, other: Any) -> bool:
        # Igualdade estrutural, ignora o estado de sincronização
        if not isinstance(other, EntityTypeMetadata):
            return NotImplemented
        return (
            self.entity_class is other.entity_class
            and self.table_name == other.table_name
            and self.keyspace == other.keyspace
            and self.fields == other.fields
        )

    __hash__ = object.__hash__


def build_metadata(cls: Type[Any]) -> EntityTypeMetadata:
    """
    Deriva os metadados de uma classe de entidade.

    Raises:
        MappingError: classe não é um Model, sem chave primária, mais de uma
            chave primária, colunas duplicadas ou campo de versão inválido.
    """
    from .model import Model

    if not isinstance(cls, type) or not issubclass(cls, Model):
        raise MappingError(f"{cls!r} não é uma subclasse de Model")
    if cls.__dict__.get("__abstract__", False):
        raise MappingError(f"{cls.__name__} é abstrato e não possui tabela")

    fields = []
    columns: Dict[str, str] = {}
    for name, field_obj in cls.model_fields.items():
        column_name = (field_obj.column_name or name).lower()
        if column_name in columns:
            raise MappingError(
                f"{cls.__name__}: campos '{columns[column_name]}' e '{name}' "
                f"mapeiam para a mesma coluna '{column_name}'"
            )
        columns[column_name] = name
        fields.append(FieldMetadata(
            name=name,
            column_name=column_name,
            field=field_obj,
            cql_type=field_obj.get_cql_type(),
            kind=FieldKind.of(field_obj),
            primary_key=field_obj.primary_key,
            version=field_obj.version,
            index=field_obj.index,
        ))

    keys = [f for f in fields if f.primary_key]
    if not keys:
        raise MappingError(f"{cls.__name__} não declara chave primária")
    if len(keys) > 1:
        # TODO: chaves compostas (partition + clustering) ainda não são suportadas
        raise MappingError(
            f"{cls.__name__} declara mais de uma chave primária "
            f"({', '.join(f.name for f in keys)}); chaves compostas não são suportadas"
        )
    primary_key = keys[0]
    if primary_key.is_collection:
        raise MappingError(f"{cls.__name__}: coleção '{primary_key.name}' não pode ser chave primária")

    versions = [f for f in fields if f.version]
    if len(versions) > 1:
        raise MappingError(f"{cls.__name__} declara mais de um campo de versão")
    version_field = versions[0] if versions else None
    if version_field is not None:
        if not isinstance(version_field.field, Integer):
            raise MappingError(f"{cls.__name__}: campo de versão '{version_field.name}' deve ser Integer ou BigInt")
        if version_field.primary_key:
            raise MappingError(f"{cls.__name__}: a chave primária não pode ser o campo de versão")

    for f in fields:
        if f.index and f.primary_key:
            raise MappingError(f"{cls.__name__}: a chave primária '{f.name}' não precisa de índice")

    return EntityTypeMetadata(
        entity_class=cls,
        table_name=cls.__table_name__.lower(),
        keyspace=getattr(cls, "__keyspace__", None),
        fields=tuple(fields),
        primary_key=primary_key,
        version_field=version_field,
    )


class EntityMetadataRegistry:
    """
    Cache de metadados por classe, com construção única por chave.

    Leituras depois do aquecimento não pegam lock.
    """

    def __init__(self):
        self._metadata: Dict[Type[Any], EntityTypeMetadata] = {}
        self._lock = threading.Lock()

    def get_metadata(self, cls: Type[Any]) -> EntityTypeMetadata:
        metadata = self._metadata.get(cls)
        if metadata is not None:
            return metadata
        with self._lock:
            metadata = self._metadata.get(cls)
            if metadata is None:
                metadata = build_metadata(cls)
                self._metadata[cls] = metadata
                logger.debug(f"Metadados construídos para {cls.__name__}: tabela '{metadata.table_name}'")
        return metadata

    def __contains__(self, cls: Type[Any]) -> bool:
        return cls in self._metadata

    def __len__(self) -> int:
        return len(self._metadata)

    def reset(self) -> None:
        """Marca todas as classes como não sincronizadas."""
        with self._lock:
            for metadata in self._metadata.values():
                metadata.reset_synced()

    def clear(self) -> None:
        with self._lock:
            self._metadata.clear()


_default_registry = EntityMetadataRegistry()


def get_registry() -> EntityMetadataRegistry:
    return _default_registry


def get_metadata(cls: Type[Any]) -> EntityTypeMetadata:
    """Atalho para o registro padrão do processo."""
    return _default_registry.get_metadata(cls)
