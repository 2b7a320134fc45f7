import threading
import time
from unittest.mock import MagicMock

import pytest

from cqlmap._internal import statement_cache as statement_cache_module
from cqlmap._internal.statement_cache import (
    StatementCache, get_statement_cache, normalize_cql, set_statement_cache
)


def make_session():
    session = MagicMock()
    session.prepare.side_effect = lambda cql: f"prepared:{cql}"
    return session


class TestStatementCache:

    def test_prepares_once_per_text(self):
        cache = StatementCache()
        session = make_session()
        first = cache.get_or_prepare(session, "SELECT * FROM app.users WHERE id = ?")
        second = cache.get_or_prepare(session, "SELECT * FROM app.users WHERE id = ?")
        assert first is second
        assert session.prepare.call_count == 1
        assert cache.hits == 1
        assert cache.misses == 1

    def test_whitespace_is_normalized(self):
        cache = StatementCache()
        session = make_session()
        cache.get_or_prepare(session, "SELECT  *\nFROM t")
        assert "SELECT * FROM t" in cache
        assert normalize_cql("  a \t b ") == "a b"

    def test_lru_eviction(self):
        cache = StatementCache(max_size=2)
        session = make_session()
        cache.get_or_prepare(session, "a")
        cache.get_or_prepare(session, "b")
        cache.get_or_prepare(session, "a")  # "b" vira o menos recente
        cache.get_or_prepare(session, "c")
        assert len(cache) == 2
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_get_does_not_prepare(self):
        cache = StatementCache()
        assert cache.get("x") is None
        assert len(cache) == 0

    def test_prepare_failure_is_not_cached(self):
        cache = StatementCache()
        session = MagicMock()
        session.prepare.side_effect = [RuntimeError("boom"), "ok"]
        with pytest.raises(RuntimeError):
            cache.get_or_prepare(session, "x")
        assert cache.get_or_prepare(session, "x") == "ok"

    def test_concurrent_misses_prepare_once(self):
        cache = StatementCache()
        session = MagicMock()

        def slow_prepare(cql):
            time.sleep(0.05)
            return object()

        session.prepare.side_effect = slow_prepare
        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.get_or_prepare(session, "q")))
                   for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert session.prepare.call_count == 1
        assert len(results) == 10
        assert all(r is results[0] for r in results)

    def test_clear(self):
        cache = StatementCache()
        cache.get_or_prepare(make_session(), "x")
        cache.clear()
        assert len(cache) == 0
        assert cache.misses == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            StatementCache(max_size=0)

    @pytest.mark.asyncio
    async def test_get_or_prepare_async(self):
        cache = StatementCache()
        session = make_session()
        first = await cache.get_or_prepare_async(session, "x")
        second = await cache.get_or_prepare_async(session, "x")
        assert first == second == "prepared:x"
        assert session.prepare.call_count == 1
        assert cache.hits == 1


class TestProcessCache:

    def test_set_and_get(self, monkeypatch):
        monkeypatch.setattr(statement_cache_module, "_statement_cache", StatementCache())
        replacement = StatementCache(max_size=10)
        set_statement_cache(replacement)
        assert get_statement_cache() is replacement

    def test_set_rejects_other_types(self):
        with pytest.raises(TypeError):
            set_statement_cache({})
