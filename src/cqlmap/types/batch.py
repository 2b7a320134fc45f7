# cqlmap/types/batch.py

import asyncio
import logging
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from cassandra.query import BatchStatement, BatchType
from typing_extensions import Self

from .._internal.query_builder import Statement
from .options import BatchOptions, WriteOptions

if TYPE_CHECKING:
    from ..core.session import MappingSession

logger = logging.getLogger(__name__)


class BatchExecutor:
    """
    Acumula saves e deletes e os envia em um único BatchStatement.

    Uso:
        msession.with_batch().save(a).save(b).delete(c).execute()

        with msession.with_batch() as batch:
            batch.save(a)
            batch.delete(User, user_id)
        # executado ao sair do bloco, apenas se não houve exceção

    Entidades versionadas salvas no batch têm a versão avançada depois de uma
    execução aplicada.
    """

    def __init__(self, mapping_session: "MappingSession", batch_type: Any = BatchType.LOGGED):
        self.mapping_session = mapping_session
        self.batch_type = batch_type
        self.statements: List[Statement] = []
        self.options: Optional[BatchOptions] = None
        self._versioned: List[Tuple[Any, Statement]] = []

    def __len__(self) -> int:
        return len(self.statements)

    def _add(self, cls: type, statement: Statement) -> Self:
        self.mapping_session.maybe_sync(cls)
        self.statements.append(statement)
        logger.debug(f"Adicionado ao batch ({len(self.statements)}): {statement.cql}")
        return self

    def save(self, entity: Any, options: Optional[WriteOptions] = None) -> Self:
        statement = self.mapping_session._build_save(entity, options)
        self._add(type(entity), statement)
        if statement.version is not None:
            self._versioned.append((entity, statement))
        return self

    def delete(self, entity_or_class: Any, id_value: Any = None, options: Optional[WriteOptions] = None) -> Self:
        cls = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
        return self._add(cls, self.mapping_session._build_delete(entity_or_class, id_value, options))

    def with_options(self, options: BatchOptions) -> Self:
        """Consistência e política de retry do batch como um todo."""
        if not isinstance(options, BatchOptions):
            raise TypeError(f"Esperado BatchOptions, recebido {type(options).__name__}")
        self.options = options
        return self

    def _advance_versions(self, result: Any) -> None:
        if result is None or not getattr(result, "was_applied", True):
            return
        for entity, statement in self._versioned:
            version_field = self.mapping_session.get_metadata(type(entity)).version_field
            version_field.set_value(entity, statement.version)

    def build(self) -> BatchStatement:
        batch = BatchStatement(batch_type=self.batch_type)
        for statement in self.statements:
            prepared = self.mapping_session.statement_cache.get_or_prepare(
                self.mapping_session.session, statement.cql
            )
            batch.add(prepared, statement.params)
        if self.options is not None:
            self.options.apply_to(batch)
        return batch

    def execute(self) -> Any:
        if not self.statements:
            logger.debug("Batch vazio, nada a executar")
            return None
        batch = self.build()
        try:
            result = self.mapping_session.session.execute(batch)
        except Exception as e:
            logger.error(f"Erro ao executar batch com {len(self.statements)} statements: {e}")
            raise
        self._advance_versions(result)
        logger.info(f"Batch executado: {len(self.statements)} statements")
        return result

    async def execute_async(self) -> Any:
        if not self.statements:
            logger.debug("Batch vazio, nada a executar")
            return None
        batch = await asyncio.to_thread(self.build)
        try:
            future = self.mapping_session.session.execute_async(batch)
            result = await asyncio.to_thread(future.result)
        except Exception as e:
            logger.error(f"Erro ao executar batch (async) com {len(self.statements)} statements: {e}")
            raise
        self._advance_versions(result)
        logger.info(f"Batch executado (ASSÍNCRONO): {len(self.statements)} statements")
        return result

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.execute()
        else:
            logger.debug(f"Batch descartado por exceção: {exc_type.__name__}")
