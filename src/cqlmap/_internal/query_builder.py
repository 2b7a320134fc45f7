# cqlmap/_internal/query_builder.py

"""
Tradução de intenções (save, delete, operações de coleção...) em CQL.

Funções puras: recebem metadados, entidade ou id e opções, devolvem um
``Statement``. Todo valor, inclusive TTL, TIMESTAMP e índice de lista, é
passado como bind marker ``?``; nenhum literal é embutido no texto.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, FrozenSet, List, Mapping, Optional, Tuple

from ..core.metadata import EntityTypeMetadata, FieldKind, FieldMetadata
from ..utils.exceptions import MappingError, UnsupportedOperationError, ValidationError

if TYPE_CHECKING:
    from ..types.options import ReadOptions, WriteOptions

logger = logging.getLogger(__name__)

INITIAL_VERSION = 0

_COLLECTION_KINDS = frozenset({FieldKind.LIST, FieldKind.SET, FieldKind.MAP})
_LIST_ONLY = frozenset({FieldKind.LIST})


@dataclass(frozen=True)
class Statement:
    """Texto CQL + parâmetros na ordem dos bind markers."""

    cql: str
    params: List[Any] = field(default_factory=list)
    keyspace: Optional[str] = None
    table: Optional[str] = None
    options: Optional[Any] = None
    conditional: bool = False
    # Valor gravado no campo de versão por um save condicional
    version: Optional[int] = None


def next_version(current: Optional[int]) -> int:
    """Valor gravado no campo de versão por um save condicional."""
    if current is None:
        return INITIAL_VERSION
    return current + 1


# --- Helpers ---

def _coerce(field_meta: FieldMetadata, value: Any) -> Any:
    try:
        return field_meta.field.to_python(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Valor inválido para campo '{field_meta.name}': {e}")


def _coerce_item(field_meta: FieldMetadata, item: Any) -> Any:
    try:
        if field_meta.kind is FieldKind.MAP:
            return field_meta.field.key_to_python(item)
        return field_meta.field.item_to_python(item)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Item inválido para a coleção '{field_meta.name}': {e}")


def _key_value(metadata: EntityTypeMetadata, id_value: Any) -> Any:
    if id_value is None:
        raise ValidationError(f"A chave primária '{metadata.primary_key.name}' não pode ser None")
    return _coerce(metadata.primary_key, id_value)


def _entity_key(metadata: EntityTypeMetadata, entity: Any) -> Any:
    if not isinstance(entity, metadata.entity_class):
        raise MappingError(
            f"Esperada instância de {metadata.entity_class.__name__}, recebido {type(entity).__name__}"
        )
    return _key_value(metadata, metadata.primary_key.get_value(entity))


def _using_clause(options: Optional[Any], allow_ttl: bool = True) -> Tuple[str, List[Any]]:
    if options is None:
        return "", []
    parts = []
    params: List[Any] = []
    ttl = getattr(options, "ttl", None)
    if ttl is not None:
        if allow_ttl:
            parts.append("TTL ?")
            params.append(ttl)
        else:
            logger.debug("TTL ignorado: DELETE não aceita TTL")
    timestamp = getattr(options, "timestamp", None)
    if timestamp is not None:
        parts.append("TIMESTAMP ?")
        params.append(timestamp)
    if not parts:
        return "", []
    return " USING " + " AND ".join(parts), params


def _check_conditional_options(options: Optional[Any]) -> None:
    if options is not None and getattr(options, "timestamp", None) is not None:
        raise UnsupportedOperationError("Escritas condicionais não aceitam TIMESTAMP customizado")


def _target_field(
    metadata: EntityTypeMetadata,
    property_name: str,
    operation: str,
    allowed_kinds: Optional[FrozenSet[FieldKind]] = None,
) -> FieldMetadata:
    field_meta = metadata.field(property_name)
    if field_meta.primary_key:
        raise MappingError(f"{operation}: a chave primária '{property_name}' não pode ser alterada")
    if allowed_kinds is not None and field_meta.kind not in allowed_kinds:
        if field_meta.kind is FieldKind.SCALAR:
            raise UnsupportedOperationError(
                f"{operation} exige uma coleção, mas '{property_name}' é {field_meta.cql_type}"
            )
        expected = " ou ".join(sorted(kind.value for kind in allowed_kinds))
        raise UnsupportedOperationError(
            f"{operation} só é suportado em {expected}, mas '{property_name}' é {field_meta.cql_type}"
        )
    return field_meta


def _as_collection(field_meta: FieldMetadata, item: Any) -> Any:
    """Converte um item único ou um lote de itens no tipo da coleção."""
    if field_meta.kind is FieldKind.MAP:
        if not isinstance(item, Mapping):
            raise ValidationError(f"'{field_meta.name}' é um map: forneça um dict, recebido {type(item).__name__}")
        return _coerce(field_meta, item)

    if isinstance(item, (list, tuple, set, frozenset)):
        items = [_coerce_item(field_meta, i) for i in item]
    else:
        items = [_coerce_item(field_meta, item)]
    if field_meta.kind is FieldKind.SET:
        return set(items)
    return items


def _map_keys(field_meta: FieldMetadata, item: Any) -> set:
    if isinstance(item, Mapping):
        item = list(item.keys())
    if isinstance(item, (list, tuple, set, frozenset)):
        return {_coerce_item(field_meta, k) for k in item}
    return {_coerce_item(field_meta, item)}


def _update(
    metadata: EntityTypeMetadata,
    keyspace: Optional[str],
    id_value: Any,
    assignment: str,
    values: List[Any],
    options: Optional["WriteOptions"],
) -> Statement:
    table = metadata.qualified_table(keyspace)
    using, using_params = _using_clause(options)
    cql = f"UPDATE {table}{using} SET {assignment} WHERE {metadata.primary_key.column_name} = ?"
    return Statement(
        cql=cql,
        params=using_params + values + [_key_value(metadata, id_value)],
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
    )


# --- Leitura ---

def build_select(
    metadata: EntityTypeMetadata,
    id_value: Any,
    keyspace: Optional[str] = None,
    options: Optional["ReadOptions"] = None,
) -> Statement:
    columns = ", ".join(metadata.column_names)
    cql = f"SELECT {columns} FROM {metadata.qualified_table(keyspace)} WHERE {metadata.primary_key.column_name} = ?"
    return Statement(
        cql=cql,
        params=[_key_value(metadata, id_value)],
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
    )


# --- Save ---

def build_insert(
    metadata: EntityTypeMetadata,
    entity: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
    if_not_exists: bool = False,
) -> Statement:
    """INSERT com todos os campos não nulos (upsert no Cassandra)."""
    key = _entity_key(metadata, entity)
    if if_not_exists:
        _check_conditional_options(options)

    columns = []
    params: List[Any] = []
    for field_meta in metadata.fields:
        if field_meta.primary_key:
            value = key
        elif field_meta.version and if_not_exists:
            value = INITIAL_VERSION
        else:
            value = field_meta.get_value(entity)
            if value is None:
                continue
            value = _coerce(field_meta, value)
        columns.append(field_meta.column_name)
        params.append(value)

    placeholders = ", ".join("?" for _ in columns)
    cql = f"INSERT INTO {metadata.qualified_table(keyspace)} ({', '.join(columns)}) VALUES ({placeholders})"
    if if_not_exists:
        cql += " IF NOT EXISTS"
    using, using_params = _using_clause(options)
    cql += using

    return Statement(
        cql=cql,
        params=params + using_params,
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
        conditional=if_not_exists,
        version=INITIAL_VERSION if if_not_exists and metadata.has_version else None,
    )


def build_conditional_update(
    metadata: EntityTypeMetadata,
    entity: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """UPDATE ... IF <versão> = <versão atual>, avançando a versão."""
    version_field = metadata.version_field
    if version_field is None:
        raise MappingError(f"{metadata.entity_class.__name__} não possui campo de versão")
    _check_conditional_options(options)

    key = _entity_key(metadata, entity)
    current = _coerce(version_field, version_field.get_value(entity))

    assignments = []
    params: List[Any] = []
    for field_meta in metadata.fields:
        if field_meta.primary_key or field_meta.version:
            continue
        value = field_meta.get_value(entity)
        if value is None:
            continue
        assignments.append(f"{field_meta.column_name} = ?")
        params.append(_coerce(field_meta, value))
    written = next_version(current)
    assignments.append(f"{version_field.column_name} = ?")
    params.append(written)

    table = metadata.qualified_table(keyspace)
    using, using_params = _using_clause(options)
    cql = (
        f"UPDATE {table}{using} SET {', '.join(assignments)} "
        f"WHERE {metadata.primary_key.column_name} = ? IF {version_field.column_name} = ?"
    )
    return Statement(
        cql=cql,
        params=using_params + params + [key, current],
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
        conditional=True,
        version=written,
    )


def build_save(
    metadata: EntityTypeMetadata,
    entity: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """
    Escolhe a forma do save:

    - sem campo de versão: INSERT incondicional;
    - versão ``None`` (entidade nova): INSERT ... IF NOT EXISTS com versão inicial;
    - versão ``v``: UPDATE ... IF versão = v, gravando v + 1.
    """
    if not metadata.has_version:
        return build_insert(metadata, entity, keyspace, options)
    if metadata.version_field.get_value(entity) is None:
        return build_insert(metadata, entity, keyspace, options, if_not_exists=True)
    return build_conditional_update(metadata, entity, keyspace, options)


# --- Delete ---

def build_delete(
    metadata: EntityTypeMetadata,
    id_value: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    using, using_params = _using_clause(options, allow_ttl=False)
    cql = f"DELETE FROM {metadata.qualified_table(keyspace)}{using} WHERE {metadata.primary_key.column_name} = ?"
    return Statement(
        cql=cql,
        params=using_params + [_key_value(metadata, id_value)],
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
    )


def build_delete_entity(
    metadata: EntityTypeMetadata,
    entity: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    return build_delete(metadata, _entity_key(metadata, entity), keyspace, options)


def build_delete_value(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """Remove o valor de uma única coluna."""
    field_meta = _target_field(metadata, property_name, "delete_value")
    using, using_params = _using_clause(options, allow_ttl=False)
    cql = (
        f"DELETE {field_meta.column_name} FROM {metadata.qualified_table(keyspace)}{using} "
        f"WHERE {metadata.primary_key.column_name} = ?"
    )
    return Statement(
        cql=cql,
        params=using_params + [_key_value(metadata, id_value)],
        keyspace=metadata.keyspace_for(keyspace),
        table=metadata.table_name,
        options=options,
    )


# --- Atualizações parciais ---

def build_update_value(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    value: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """Grava uma única coluna. ``None`` apaga a coluna em vez de gravar um valor vazio."""
    if value is None:
        return build_delete_value(metadata, id_value, property_name, keyspace, options)
    field_meta = _target_field(metadata, property_name, "update_value")
    return _update(
        metadata, keyspace, id_value,
        f"{field_meta.column_name} = ?", [_coerce(field_meta, value)], options,
    )


def build_append(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    item: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """Acrescenta item(ns) ao fim de um list, a um set ou entradas a um map."""
    field_meta = _target_field(metadata, property_name, "append", _COLLECTION_KINDS)
    column = field_meta.column_name
    return _update(
        metadata, keyspace, id_value,
        f"{column} = {column} + ?", [_as_collection(field_meta, item)], options,
    )


def build_prepend(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    item: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    field_meta = _target_field(metadata, property_name, "prepend", _LIST_ONLY)
    column = field_meta.column_name
    return _update(
        metadata, keyspace, id_value,
        f"{column} = ? + {column}", [_as_collection(field_meta, item)], options,
    )


def build_replace_at(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    item: Any,
    index: int,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """
    Substitui o item na posição ``index`` de um list.

    O limite superior não é verificado localmente: índice fora do tamanho
    atual é rejeitado pelo servidor.
    """
    field_meta = _target_field(metadata, property_name, "replace_at", _LIST_ONLY)
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValidationError(f"O índice deve ser um inteiro, recebido {type(index).__name__}")
    if index < 0:
        raise ValidationError(f"O índice não pode ser negativo: {index}")
    return _update(
        metadata, keyspace, id_value,
        f"{field_meta.column_name}[?] = ?", [index, _coerce_item(field_meta, item)], options,
    )


def build_remove_value(
    metadata: EntityTypeMetadata,
    id_value: Any,
    property_name: str,
    item: Any,
    keyspace: Optional[str] = None,
    options: Optional["WriteOptions"] = None,
) -> Statement:
    """Remove item(ns) de um list ou set; em um map remove as chaves informadas."""
    field_meta = _target_field(metadata, property_name, "remove_value", _COLLECTION_KINDS)
    if field_meta.kind is FieldKind.MAP:
        value = _map_keys(field_meta, item)
    else:
        value = _as_collection(field_meta, item)
    column = field_meta.column_name
    return _update(metadata, keyspace, id_value, f"{column} = {column} - ?", [value], options)


# --- DDL ---

def build_create_table_cql(metadata: EntityTypeMetadata, keyspace: Optional[str] = None) -> str:
    columns = ", ".join(f"{f.column_name} {f.cql_type}" for f in metadata.fields)
    return (
        f"CREATE TABLE IF NOT EXISTS {metadata.qualified_table(keyspace)} "
        f"({columns}, PRIMARY KEY ({metadata.primary_key.column_name}))"
    )


def build_add_column_cql(table_name: str, column_name: str, cql_type: str) -> str:
    return f"ALTER TABLE {table_name} ADD {column_name} {cql_type};"


def index_name(metadata: EntityTypeMetadata, field_meta: FieldMetadata) -> str:
    return f"{metadata.table_name}_{field_meta.column_name}_idx"


def build_create_index_cql(table_name: str, column_name: str, name: str) -> str:
    return f"CREATE INDEX IF NOT EXISTS {name} ON {table_name} ({column_name});"
