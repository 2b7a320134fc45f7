# cqlmap/core/connection.py

import asyncio
import logging
from typing import Any, List, Optional

from cassandra import InvalidRequest
from cassandra.cluster import Cluster, NoHostAvailable, Session

from .._internal.statement_cache import StatementCache
from ..utils.config import MappingConfig, load_config
from ..utils.exceptions import ConnectionError
from .session import MappingSession

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Mantém o Cluster e a Session do driver usados pelo processo."""

    def __init__(self):
        self.cluster: Optional[Cluster] = None
        self.session: Optional[Session] = None
        self.config: Optional[MappingConfig] = None
        self._statement_cache: Optional[StatementCache] = None

    @property
    def is_connected(self) -> bool:
        return self.session is not None

    def _resolve_config(
        self,
        config: Optional[MappingConfig],
        contact_points: Optional[List[str]],
        port: Optional[int],
        keyspace: Optional[str],
        **kwargs: Any,
    ) -> MappingConfig:
        if config is not None:
            return config
        return load_config(hosts=contact_points, port=port, keyspace=keyspace, **kwargs)

    def connect(
        self,
        contact_points: Optional[List[str]] = None,
        port: Optional[int] = None,
        keyspace: Optional[str] = None,
        config: Optional[MappingConfig] = None,
        **kwargs: Any,
    ) -> Session:
        """
        Conecta ao cluster.

        Args:
            contact_points: Hosts do cluster. Padrão: configuração carregada.
            port: Porta CQL.
            keyspace: Keyspace padrão da sessão.
            config: ``MappingConfig`` pronto; ignora os demais argumentos.
            **kwargs: Outros campos de ``MappingConfig`` (ex: ``do_not_sync``).

        Raises:
            ConnectionError: Nenhum host disponível ou keyspace inexistente.
        """
        config = self._resolve_config(config, contact_points, port, keyspace, **kwargs)
        cluster = Cluster(contact_points=config.hosts, port=config.port)
        try:
            session = cluster.connect()
            if config.keyspace:
                session.set_keyspace(config.keyspace)
        except NoHostAvailable as e:
            cluster.shutdown()
            logger.error(f"Erro ao conectar ao Cassandra em {config.hosts}:{config.port}: {e}")
            raise ConnectionError(f"Nenhum host disponível em {config.hosts}:{config.port}") from e
        except InvalidRequest as e:
            cluster.shutdown()
            logger.error(f"Erro ao usar o keyspace '{config.keyspace}': {e}")
            raise ConnectionError(f"Keyspace '{config.keyspace}' não pôde ser usado: {e}") from e

        self.cluster = cluster
        self.session = session
        self.config = config
        self._statement_cache = None
        logger.info(f"Conectado ao Cassandra em {config.hosts}:{config.port} (keyspace: {config.keyspace})")
        return session

    async def connect_async(
        self,
        contact_points: Optional[List[str]] = None,
        port: Optional[int] = None,
        keyspace: Optional[str] = None,
        config: Optional[MappingConfig] = None,
        **kwargs: Any,
    ) -> Session:
        return await asyncio.to_thread(self.connect, contact_points, port, keyspace, config, **kwargs)

    def disconnect(self) -> None:
        if self.cluster is not None:
            self.cluster.shutdown()
            logger.info("Desconectado do Cassandra")
        self.cluster = None
        self.session = None
        self._statement_cache = None

    async def disconnect_async(self) -> None:
        await asyncio.to_thread(self.disconnect)

    def get_session(self) -> Session:
        if self.session is None:
            raise ConnectionError("Não há conexão ativa com o Cassandra. Chame connect() primeiro.")
        return self.session

    def get_mapping_session(self) -> MappingSession:
        """MappingSession sobre a sessão ativa, com as opções da configuração."""
        session = self.get_session()
        config = self.config or MappingConfig()
        if self._statement_cache is None:
            self._statement_cache = StatementCache(config.statement_cache_size)
        return MappingSession(
            session,
            keyspace=config.keyspace,
            do_not_sync=config.do_not_sync,
            statement_cache=self._statement_cache,
            mismatch_policy=config.mismatch_policy,
        )


connection = ConnectionManager()


def connect(**kwargs: Any) -> Session:
    return connection.connect(**kwargs)


async def connect_async(**kwargs: Any) -> Session:
    return await connection.connect_async(**kwargs)


def disconnect() -> None:
    connection.disconnect()


async def disconnect_async() -> None:
    await connection.disconnect_async()


def get_session() -> Session:
    return connection.get_session()


def get_mapping_session() -> MappingSession:
    return connection.get_mapping_session()
