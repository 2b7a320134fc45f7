# cqlmap/core/session.py

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Type, TypeVar

from .._internal import query_builder
from .._internal.query_builder import Statement
from .._internal.schema_sync import SchemaSynchronizer
from .._internal.serialization import instance_from_row, instances_from_rows, row_to_dict
from .._internal.statement_cache import StatementCache, get_statement_cache, set_statement_cache
from ..types.batch import BatchExecutor
from ..types.options import ReadOptions, WriteOptions
from .metadata import EntityMetadataRegistry, EntityTypeMetadata, get_registry

logger = logging.getLogger(__name__)

E = TypeVar("E")


class MappingSession:
    """
    API para persistir entidades no Cassandra.

    Envolve uma ``cassandra.cluster.Session``; crie uma por sessão do driver
    ou uma por requisição, ambas são leves::

        msession = MappingSession(session, keyspace="app")
        msession.save(user)
        msession.get(User, user_id)
        msession.delete(user)

    Cada operação segue: metadados -> statement -> sincronização do schema (uma
    vez por classe) -> prepared statement em cache -> execução.
    """

    def __init__(
        self,
        session: Any,
        keyspace: Optional[str] = None,
        do_not_sync: bool = False,
        registry: Optional[EntityMetadataRegistry] = None,
        statement_cache: Optional[StatementCache] = None,
        mismatch_policy: str = "warn",
    ):
        self.session = session
        self.keyspace = keyspace or getattr(session, "keyspace", None)
        self.do_not_sync = do_not_sync
        self.registry = registry if registry is not None else get_registry()
        self._statement_cache = statement_cache
        self.synchronizer = SchemaSynchronizer(session, self.keyspace, mismatch_policy=mismatch_policy)

    def __repr__(self) -> str:
        return f"<MappingSession keyspace={self.keyspace!r} do_not_sync={self.do_not_sync}>"

    # --- Infraestrutura ---

    @property
    def statement_cache(self) -> StatementCache:
        # Sem cache próprio, usa o do processo (que pode ser trocado a qualquer momento)
        if self._statement_cache is not None:
            return self._statement_cache
        return get_statement_cache()

    @staticmethod
    def get_statement_cache() -> StatementCache:
        return get_statement_cache()

    @staticmethod
    def set_statement_cache(cache: StatementCache) -> None:
        set_statement_cache(cache)

    def get_metadata(self, cls: Type[Any]) -> EntityTypeMetadata:
        return self.registry.get_metadata(cls)

    def maybe_sync(self, cls: Type[Any]) -> None:
        """Sincroniza o schema da classe se ainda não foi feito neste processo."""
        if self.do_not_sync:
            return
        metadata = self.get_metadata(cls)
        if not metadata.synced:
            self.synchronizer.sync(metadata)

    async def maybe_sync_async(self, cls: Type[Any]) -> None:
        if self.do_not_sync:
            return
        metadata = self.get_metadata(cls)
        if not metadata.synced:
            await self.synchronizer.sync_async(metadata)

    def sync(self, cls: Type[Any]) -> bool:
        """Força a sincronização da classe, mesmo com ``do_not_sync``."""
        return self.synchronizer.sync(self.get_metadata(cls))

    async def sync_async(self, cls: Type[Any]) -> bool:
        return await self.synchronizer.sync_async(self.get_metadata(cls))

    def bind(self, statement: Statement) -> Any:
        prepared = self.statement_cache.get_or_prepare(self.session, statement.cql)
        bound = prepared.bind(statement.params)
        if statement.options is not None:
            statement.options.apply_to(bound)
        return bound

    async def bind_async(self, statement: Statement) -> Any:
        prepared = await self.statement_cache.get_or_prepare_async(self.session, statement.cql)
        bound = prepared.bind(statement.params)
        if statement.options is not None:
            statement.options.apply_to(bound)
        return bound

    def _execute(self, statement: Statement) -> Any:
        logger.debug(f"Executando (SÍNCRONO): {statement.cql} com parâmetros: {statement.params}")
        try:
            return self.session.execute(self.bind(statement))
        except Exception as e:
            logger.error(f"Erro ao executar '{statement.cql}': {e}")
            raise

    async def _execute_async(self, statement: Statement) -> Any:
        logger.debug(f"Executando (ASSÍNCRONO): {statement.cql} com parâmetros: {statement.params}")
        try:
            bound = await self.bind_async(statement)
            future = self.session.execute_async(bound)
            return await asyncio.to_thread(future.result)
        except Exception as e:
            logger.error(f"Erro ao executar (async) '{statement.cql}': {e}")
            raise

    def _build(self, cls: Type[Any], build: Callable[..., Statement], *args: Any, options: Any = None) -> Statement:
        # Validação local acontece aqui, antes de qualquer chamada de rede
        metadata = self.get_metadata(cls)
        return build(metadata, *args, keyspace=self.keyspace, options=options)

    def _mutate(self, cls: Type[Any], build: Callable[..., Statement], *args: Any, options: Any = None) -> None:
        statement = self._build(cls, build, *args, options=options)
        self.maybe_sync(cls)
        self._execute(statement)

    async def _mutate_async(self, cls: Type[Any], build: Callable[..., Statement], *args: Any, options: Any = None) -> None:
        statement = self._build(cls, build, *args, options=options)
        await self.maybe_sync_async(cls)
        await self._execute_async(statement)

    # --- Leitura ---

    def get(self, cls: Type[E], id_value: Any, options: Optional[ReadOptions] = None) -> Optional[E]:
        """Retorna a instância persistida com o id informado, ou None."""
        statement = self._build(cls, query_builder.build_select, id_value, options=options)
        self.maybe_sync(cls)
        row = self._execute(statement).one()
        if row is None:
            return None
        return instance_from_row(self.get_metadata(cls), row)

    async def get_async(self, cls: Type[E], id_value: Any, options: Optional[ReadOptions] = None) -> Optional[E]:
        statement = self._build(cls, query_builder.build_select, id_value, options=options)
        await self.maybe_sync_async(cls)
        row = (await self._execute_async(statement)).one()
        if row is None:
            return None
        return instance_from_row(self.get_metadata(cls), row)

    def get_by_query(self, cls: Type[E], query: Any, params: Optional[Sequence[Any]] = None) -> List[E]:
        """
        Executa uma query (texto CQL ou statement do driver) e mapeia cada
        linha para uma instância de ``cls``.
        """
        self.maybe_sync(cls)
        logger.debug(f"Executando query (SÍNCRONO): {query} com parâmetros: {params}")
        return self.get_from_result_set(cls, self.session.execute(query, params))

    async def get_by_query_async(self, cls: Type[E], query: Any, params: Optional[Sequence[Any]] = None) -> List[E]:
        await self.maybe_sync_async(cls)
        logger.debug(f"Executando query (ASSÍNCRONO): {query} com parâmetros: {params}")
        future = self.session.execute_async(query, params)
        return self.get_from_result_set(cls, await asyncio.to_thread(future.result))

    def get_from_result_set(self, cls: Type[E], result_set: Any) -> List[E]:
        return instances_from_rows(self.get_metadata(cls), result_set)

    # --- Save ---

    def _build_save(self, entity: Any, options: Optional[WriteOptions]) -> Statement:
        return self._build(type(entity), query_builder.build_save, entity, options=options)

    def _after_save(self, entity: E, statement: Statement, result: Any) -> Optional[E]:
        if not statement.conditional:
            logger.info(f"Instância salva: {type(entity).__name__}")
            return entity
        version_field = self.get_metadata(type(entity)).version_field
        if not result.was_applied:
            logger.info(
                f"Save condicional não aplicado para {type(entity).__name__}: "
                f"versão {version_field.get_value(entity)} desatualizada"
            )
            return None
        version_field.set_value(entity, statement.version)
        logger.info(f"Instância salva: {type(entity).__name__} (versão {statement.version})")
        return entity

    def _first_insert(self, entity: Any, statement: Statement, result: Any,
                      options: Optional[WriteOptions]) -> Optional[Statement]:
        """
        INSERT ... IF NOT EXISTS para uma entidade na versão inicial cuja linha
        ainda não existe. O Cassandra só devolve a coluna de versão junto com
        ``[applied] = False`` quando a linha existe.
        """
        if not statement.conditional or result.was_applied:
            return None
        if statement.version != query_builder.next_version(query_builder.INITIAL_VERSION):
            return None
        metadata = self.get_metadata(type(entity))
        if metadata.version_field.column_name in row_to_dict(result.one()):
            return None
        logger.debug(f"Linha de {type(entity).__name__} inexistente, inserindo na versão inicial")
        return query_builder.build_insert(metadata, entity, self.keyspace, options, if_not_exists=True)

    def save(self, entity: E, options: Optional[WriteOptions] = None) -> Optional[E]:
        """
        Persiste a entidade.

        Returns:
            A própria entidade, ou None se a entidade tem campo de versão e a
            versão gravada no banco não é a versão da instância (lock otimista).
        """
        statement = self._build_save(entity, options)
        self.maybe_sync(type(entity))
        result = self._execute(statement)
        insert = self._first_insert(entity, statement, result, options)
        if insert is not None:
            statement, result = insert, self._execute(insert)
        return self._after_save(entity, statement, result)

    async def save_async(self, entity: E, options: Optional[WriteOptions] = None) -> Optional[E]:
        statement = self._build_save(entity, options)
        await self.maybe_sync_async(type(entity))
        result = await self._execute_async(statement)
        insert = self._first_insert(entity, statement, result, options)
        if insert is not None:
            statement, result = insert, await self._execute_async(insert)
        return self._after_save(entity, statement, result)

    # --- Delete ---

    def _build_delete(self, entity_or_class: Any, id_value: Any, options: Optional[WriteOptions]) -> Statement:
        if isinstance(entity_or_class, type):
            return self._build(entity_or_class, query_builder.build_delete, id_value, options=options)
        if id_value is not None:
            raise TypeError("delete(entidade) não aceita id; use delete(Classe, id)")
        return self._build(type(entity_or_class), query_builder.build_delete_entity, entity_or_class, options=options)

    def delete(self, entity_or_class: Any, id_value: Any = None, options: Optional[WriteOptions] = None) -> None:
        """Remove a entidade: ``delete(entidade)`` ou ``delete(Classe, id)``."""
        cls = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
        statement = self._build_delete(entity_or_class, id_value, options)
        self.maybe_sync(cls)
        self._execute(statement)
        logger.info(f"Instância deletada: {cls.__name__}")

    async def delete_async(self, entity_or_class: Any, id_value: Any = None, options: Optional[WriteOptions] = None) -> None:
        cls = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
        statement = self._build_delete(entity_or_class, id_value, options)
        await self.maybe_sync_async(cls)
        await self._execute_async(statement)
        logger.info(f"Instância deletada (ASSÍNCRONO): {cls.__name__}")

    # --- Atualizações parciais ---

    def update_value(self, id_value: Any, cls: Type[Any], property_name: str, value: Any,
                     options: Optional[WriteOptions] = None) -> None:
        """Grava um único valor. ``None`` apaga a coluna."""
        self._mutate(cls, query_builder.build_update_value, id_value, property_name, value, options=options)

    async def update_value_async(self, id_value: Any, cls: Type[Any], property_name: str, value: Any,
                                 options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_update_value, id_value, property_name, value, options=options)

    def delete_value(self, id_value: Any, cls: Type[Any], property_name: str,
                     options: Optional[WriteOptions] = None) -> None:
        self._mutate(cls, query_builder.build_delete_value, id_value, property_name, options=options)

    async def delete_value_async(self, id_value: Any, cls: Type[Any], property_name: str,
                                 options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_delete_value, id_value, property_name, options=options)

    def append(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
               options: Optional[WriteOptions] = None) -> None:
        """Acrescenta um valor, um list/set de valores ou um dict à coleção."""
        self._mutate(cls, query_builder.build_append, id_value, property_name, item, options=options)

    async def append_async(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
                           options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_append, id_value, property_name, item, options=options)

    def prepend(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
                options: Optional[WriteOptions] = None) -> None:
        """Insere item(ns) no início de um list."""
        self._mutate(cls, query_builder.build_prepend, id_value, property_name, item, options=options)

    async def prepend_async(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
                            options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_prepend, id_value, property_name, item, options=options)

    def replace_at(self, id_value: Any, cls: Type[Any], property_name: str, item: Any, index: int,
                   options: Optional[WriteOptions] = None) -> None:
        """Substitui o item na posição ``index`` de um list."""
        self._mutate(cls, query_builder.build_replace_at, id_value, property_name, item, index, options=options)

    async def replace_at_async(self, id_value: Any, cls: Type[Any], property_name: str, item: Any, index: int,
                               options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_replace_at, id_value, property_name, item, index, options=options)

    def remove_value(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
                     options: Optional[WriteOptions] = None) -> None:
        """Remove item(ns) de um list/set, ou chaves de um map."""
        self._mutate(cls, query_builder.build_remove_value, id_value, property_name, item, options=options)

    async def remove_value_async(self, id_value: Any, cls: Type[Any], property_name: str, item: Any,
                                 options: Optional[WriteOptions] = None) -> None:
        await self._mutate_async(cls, query_builder.build_remove_value, id_value, property_name, item, options=options)

    # --- Batch ---

    def with_batch(self) -> BatchExecutor:
        return BatchExecutor(self)
