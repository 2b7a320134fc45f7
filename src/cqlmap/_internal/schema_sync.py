# cqlmap/_internal/schema_sync.py

"""
Sincronização do schema remoto com os metadados das entidades.

A política é aditiva: cria a tabela se não existir, adiciona colunas e
índices ausentes. Nunca remove nem altera o tipo de colunas existentes.
"""

import asyncio
import logging
import re
import threading
from typing import Any, Dict, List, Optional

from cassandra import DriverException

from ..core.metadata import EntityTypeMetadata
from ..utils.exceptions import SchemaSyncError
from . import query_builder

logger = logging.getLogger(__name__)

MISMATCH_POLICIES = ("warn", "error")

_INDEX_TARGET = re.compile(r'^\s*(?:\w+\()?\s*"?([^"()]+?)"?\s*\)?\s*$')

_sync_locks: Dict[type, threading.Lock] = {}
_sync_locks_guard = threading.Lock()


def _lock_for(cls: type) -> threading.Lock:
    with _sync_locks_guard:
        lock = _sync_locks.get(cls)
        if lock is None:
            lock = _sync_locks[cls] = threading.Lock()
        return lock


def _normalize_type(cql_type: str) -> str:
    return re.sub(r"\s+", "", str(cql_type)).lower()


def _cluster_metadata(session: Any) -> Optional[Any]:
    cluster = getattr(session, "cluster", None)
    if cluster is None:
        return None
    return getattr(cluster, "metadata", None)


def _index_target(index_meta: Any) -> Optional[str]:
    options = getattr(index_meta, "index_options", None) or {}
    target = options.get("target")
    if not target:
        return None
    match = _INDEX_TARGET.match(target)
    return match.group(1).lower() if match else target.lower()


def get_cassandra_table_schema(session: Any, keyspace: str, table_name: str) -> Optional[Dict[str, Any]]:
    """
    Lê o schema atual de uma tabela pela API de metadados do driver.

    Returns:
        ``{'fields': {coluna: {'type': tipo}}, 'primary_keys': [...],
        'partition_keys': [...], 'clustering_keys': [...], 'indexes': {coluna: nome}}``
        ou None se o cluster, o keyspace ou a tabela não estiverem disponíveis.
    """
    cluster_metadata = _cluster_metadata(session)
    if cluster_metadata is None:
        return None
    keyspace_meta = cluster_metadata.keyspaces.get(keyspace)
    if keyspace_meta is None:
        return None
    table_meta = keyspace_meta.tables.get(table_name)
    if table_meta is None:
        return None

    indexes = {}
    for name, index_meta in (getattr(table_meta, "indexes", None) or {}).items():
        target = _index_target(index_meta)
        if target:
            indexes[target] = name

    return {
        'fields': {name: {'type': str(col.cql_type)} for name, col in table_meta.columns.items()},
        'primary_keys': [col.name for col in table_meta.primary_key],
        'partition_keys': [col.name for col in table_meta.partition_key],
        'clustering_keys': [col.name for col in table_meta.clustering_key],
        'indexes': indexes,
    }


class SchemaSynchronizer:
    """
    Garante que o schema remoto é compatível com os metadados de uma classe.

    Cada classe é sincronizada no máximo uma vez por processo: chamadas
    concorrentes para a mesma classe são serializadas e as seguintes veem a
    flag ``synced`` já marcada.
    """

    def __init__(self, session: Any, keyspace: Optional[str] = None, mismatch_policy: str = "warn"):
        if mismatch_policy not in MISMATCH_POLICIES:
            raise ValueError(f"mismatch_policy deve ser um de {MISMATCH_POLICIES}, recebido '{mismatch_policy}'")
        self.session = session
        self.keyspace = keyspace
        self.mismatch_policy = mismatch_policy

    def _resolve_keyspace(self, metadata: EntityTypeMetadata) -> str:
        keyspace = metadata.keyspace_for(self.keyspace) or getattr(self.session, "keyspace", None)
        if not keyspace:
            raise SchemaSyncError(
                f"Nenhum keyspace definido para sincronizar '{metadata.table_name}'",
                table=metadata.table_name,
            )
        return keyspace

    def _refresh(self, keyspace: str) -> None:
        cluster = getattr(self.session, "cluster", None)
        if cluster is None or not hasattr(cluster, "refresh_keyspace_metadata"):
            return
        try:
            cluster.refresh_keyspace_metadata(keyspace)
        except DriverException as e:
            # Usa o que o driver já tem em memória
            logger.debug(f"Não foi possível atualizar os metadados de '{keyspace}': {e}")

    def _mismatch(self, metadata: EntityTypeMetadata, message: str) -> None:
        if self.mismatch_policy == "error":
            raise SchemaSyncError(message, table=metadata.table_name)
        logger.warning(f"{message} (mantido, política aditiva)")

    def plan(self, metadata: EntityTypeMetadata) -> List[str]:
        """Retorna o DDL necessário para alinhar o schema remoto, sem executá-lo."""
        keyspace = self._resolve_keyspace(metadata)
        self._refresh(keyspace)

        cluster_metadata = _cluster_metadata(self.session)
        if cluster_metadata is not None and keyspace not in cluster_metadata.keyspaces:
            raise SchemaSyncError(f"Keyspace '{keyspace}' não existe", table=metadata.table_name)

        table = metadata.qualified_table(keyspace)
        live = get_cassandra_table_schema(self.session, keyspace, metadata.table_name)

        statements: List[str] = []
        if live is None:
            statements.append(query_builder.build_create_table_cql(metadata, keyspace))
            live_columns: Dict[str, Any] = {}
            live_indexes: Dict[str, str] = {}
        else:
            live_columns = live['fields']
            live_indexes = live['indexes']
            pk_column = metadata.primary_key.column_name
            if live['primary_keys'] != [pk_column]:
                self._mismatch(
                    metadata,
                    f"Chave primária de '{table}' é {live['primary_keys']}, esperado ['{pk_column}']",
                )
            for field_meta in metadata.fields:
                remote = live_columns.get(field_meta.column_name)
                if remote is None:
                    statements.append(
                        query_builder.build_add_column_cql(table, field_meta.column_name, field_meta.cql_type)
                    )
                elif _normalize_type(remote['type']) != _normalize_type(field_meta.cql_type):
                    self._mismatch(
                        metadata,
                        f"Coluna '{table}.{field_meta.column_name}' é {remote['type']}, "
                        f"esperado {field_meta.cql_type}",
                    )

        for field_meta in metadata.indexed_fields:
            if field_meta.column_name not in live_indexes:
                statements.append(query_builder.build_create_index_cql(
                    table, field_meta.column_name, query_builder.index_name(metadata, field_meta)
                ))
        return statements

    def sync(self, metadata: EntityTypeMetadata) -> bool:
        """
        Sincroniza a classe se ainda não foi sincronizada.

        Returns:
            True se a sincronização rodou agora, False se já estava feita.

        Raises:
            SchemaSyncError: falha de DDL; a classe continua não sincronizada.
        """
        if metadata.synced:
            return False
        with _lock_for(metadata.entity_class):
            if metadata.synced:
                return False
            statements = self.plan(metadata)
            for cql in statements:
                try:
                    self.session.execute(cql)
                except Exception as e:
                    logger.error(f"Erro ao sincronizar '{metadata.table_name}': {e}")
                    raise SchemaSyncError(
                        f"Falha ao executar DDL para '{metadata.table_name}': {e}",
                        table=metadata.table_name,
                    ) from e
                logger.info(f"Schema sincronizado: {cql}")
            metadata.mark_synced()
            if not statements:
                logger.debug(f"Tabela '{metadata.table_name}' já está em dia")
            return True

    async def sync_async(self, metadata: EntityTypeMetadata) -> bool:
        if metadata.synced:
            return False
        return await asyncio.to_thread(self.sync, metadata)
