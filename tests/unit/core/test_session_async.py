"""
Testes das variantes assíncronas do MappingSession.
"""

import asyncio
from unittest.mock import patch

import pytest
from cassandra import InvalidRequest

from cqlmap.utils.exceptions import UnsupportedOperationError
from tests.models import Profile, User


@pytest.mark.asyncio
async def test_save_and_get_async(msession):
    profile = Profile(id=1, email="a@x.com", tags={"a"})
    assert await msession.save_async(profile) is profile
    loaded = await msession.get_async(Profile, 1)
    assert loaded == profile
    assert await msession.get_async(Profile, 2) is None


@pytest.mark.asyncio
async def test_versioned_save_async(msession):
    user = User(id="9b0a3c1e-5f7d-4e2a-8c6b-1d2e3f405162", name="ana")
    await msession.save_async(user)
    stale = await msession.get_async(User, user.id)

    user.name = "bia"
    assert await msession.save_async(user) is user
    assert user.version == 1
    assert await msession.save_async(stale) is None


@pytest.mark.asyncio
async def test_first_save_at_initial_version_async(msession):
    user = User(id="9b0a3c1e-5f7d-4e2a-8c6b-1d2e3f405162", name="ana", version=0)
    assert await msession.save_async(user) is user
    assert user.version == 0
    assert (await msession.get_async(User, user.id)).version == 0


@pytest.mark.asyncio
async def test_delete_async(msession):
    await msession.save_async(Profile(id=1))
    await msession.save_async(Profile(id=2))
    await msession.delete_async(Profile(id=1))
    await msession.delete_async(Profile, 2)
    assert await msession.get_async(Profile, 1) is None
    assert await msession.get_async(Profile, 2) is None


@pytest.mark.asyncio
async def test_collection_ops_async(msession):
    await msession.save_async(Profile(id=1, scores=[1], email="e"))
    await msession.append_async(1, Profile, "scores", 2)
    await msession.prepend_async(1, Profile, "scores", 0)
    await msession.replace_at_async(1, Profile, "scores", 5, 1)
    await msession.remove_value_async(1, Profile, "scores", 2)
    await msession.append_async(1, Profile, "tags", ["x", "y"])
    await msession.update_value_async(1, Profile, "nickname", "nick")
    await msession.delete_value_async(1, Profile, "email")

    loaded = await msession.get_async(Profile, 1)
    assert loaded.scores == [0, 5]
    assert loaded.tags == {"x", "y"}
    assert loaded.nickname == "nick"
    assert loaded.email is None


@pytest.mark.asyncio
async def test_get_by_query_async(msession):
    await msession.save_async(Profile(id=1, email="a"))
    found = await msession.get_by_query_async(Profile, "SELECT * FROM app.profiles WHERE id = %s", [1])
    assert [p.email for p in found] == ["a"]


@pytest.mark.asyncio
async def test_async_validation_before_network(msession, session):
    with pytest.raises(UnsupportedOperationError):
        await msession.prepend_async(1, Profile, "tags", "x")
    assert session.executed == []


@pytest.mark.asyncio
async def test_async_driver_error_propagates(msession, session):
    await msession.save_async(Profile(id=1))
    session.fail_on("UPDATE", InvalidRequest("falha"))
    with pytest.raises(InvalidRequest):
        await msession.update_value_async(1, Profile, "email", "x")


@pytest.mark.asyncio
async def test_result_wait_runs_in_thread(msession):
    await msession.save_async(Profile(id=1))
    with patch("cqlmap.core.session.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        await msession.get_async(Profile, 1)
    assert to_thread.call_count >= 1


@pytest.mark.asyncio
async def test_concurrent_async_saves(msession, session):
    await asyncio.gather(*(msession.save_async(Profile(id=i)) for i in range(10)))
    assert len(session.table("profiles")) == 10
    create = [ddl for ddl in session.ddl if ddl.startswith("CREATE TABLE")]
    assert len(create) == 1
