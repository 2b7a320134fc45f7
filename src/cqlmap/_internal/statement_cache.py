# cqlmap/_internal/statement_cache.py

import asyncio
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000


def normalize_cql(cql: str) -> str:
    return " ".join(cql.split())


class StatementCache:
    """
    Cache LRU de prepared statements, chaveado pelo texto CQL normalizado.

    Cada texto distinto é preparado no máximo uma vez, mesmo com misses
    concorrentes: quem chega depois espera o prepare em andamento.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size deve ser >= 1")
        self.max_size = max_size
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, cql: str) -> bool:
        return normalize_cql(cql) in self._entries

    def get(self, cql: str) -> Optional[Any]:
        """Retorna o prepared statement em cache, ou None, sem preparar."""
        key = normalize_cql(cql)
        with self._lock:
            prepared = self._entries.get(key)
            if prepared is not None:
                self._entries.move_to_end(key)
            return prepared

    def get_or_prepare(self, session: Any, cql: str) -> Any:
        key = normalize_cql(cql)
        with self._lock:
            prepared = self._entries.get(key)
            if prepared is not None:
                self._entries.move_to_end(key)
                self.hits += 1
                return prepared
            pending = self._pending.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._pending[key] = pending
                self.misses += 1

        if not owner:
            # Outro thread já está preparando este texto
            return pending.result()

        try:
            prepared = session.prepare(cql)
        except Exception as e:
            with self._lock:
                self._pending.pop(key, None)
            pending.set_exception(e)
            logger.error(f"Falha ao preparar statement: {key[:80]}: {e}")
            raise

        with self._lock:
            self._entries[key] = prepared
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Prepared statement removido (LRU): {evicted[:80]}")
            self._pending.pop(key, None)
        pending.set_result(prepared)
        logger.debug(f"Statement preparado ({len(self._entries)}/{self.max_size}): {key[:80]}")
        return prepared

    async def get_or_prepare_async(self, session: Any, cql: str) -> Any:
        prepared = self.get(cql)
        if prepared is not None:
            with self._lock:
                self.hits += 1
            return prepared
        return await asyncio.to_thread(self.get_or_prepare, session, cql)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0


_statement_cache = StatementCache()


def get_statement_cache() -> StatementCache:
    return _statement_cache


def set_statement_cache(cache: StatementCache) -> None:
    """Substitui o cache do processo (ex: por outro com tamanho diferente)."""
    global _statement_cache
    if not isinstance(cache, StatementCache):
        raise TypeError(f"Esperado StatementCache, recebido {type(cache).__name__}")
    _statement_cache = cache
    logger.info(f"Cache de prepared statements substituído (max_size={cache.max_size})")
