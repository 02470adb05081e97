"""Agreement store and session flag store tests."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from rulesgate.schemas.agreement import AgreementRecord
from rulesgate.stores.base import AgreementStore, SessionFlagStore, StoreError, UniqueViolation
from rulesgate.stores.local import STORAGE_KEY, LocalFallbackStore
from rulesgate.stores.session import MemorySessionFlagStore, RedisSessionFlagStore
from rulesgate.stores.sql import SqlAgreementStore, is_unique_violation


def make_record(code: str = "DKP-AAAAAA", **overrides) -> AgreementRecord:
    data = {
        "first_name": "Jane",
        "last_name": "Doe",
        "confirmation_code": code,
        "agreed_at": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return AgreementRecord(**data)


class _PgError(Exception):
    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


class _SessionContext:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


def make_session():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.mark.unit
@pytest.mark.asyncio
class TestLocalFallbackStore:
    async def test_append_and_read(self, tmp_path):
        store = LocalFallbackStore(tmp_path / "store.json")
        stored = await store.insert(make_record())

        assert stored.id is not None
        raw = json.loads((tmp_path / "store.json").read_text())
        assert list(raw) == [STORAGE_KEY]
        assert raw[STORAGE_KEY][0]["confirmation_code"] == "DKP-AAAAAA"

    async def test_missing_file_reads_empty(self, tmp_path):
        store = LocalFallbackStore(tmp_path / "nothing.json")
        assert await store.read_all() == []
        assert await store.query_all() == []

    async def test_uniqueness_not_enforced(self, tmp_path):
        store = LocalFallbackStore(tmp_path / "store.json")
        await store.insert(make_record("DKP-SAME00"))
        await store.insert(make_record("DKP-SAME00"))
        assert len(await store.read_all()) == 2

    async def test_query_all_newest_first(self, tmp_path):
        store = LocalFallbackStore(tmp_path / "store.json")
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        for i, (code, offset) in enumerate([("DKP-OLD000", 0), ("DKP-NEW000", 2), ("DKP-MID000", 1)]):
            await store.append(
                make_record(code, id=i, agreed_at=base + timedelta(days=offset)).model_dump(mode="json")
            )

        codes = [r.confirmation_code for r in await store.query_all()]
        assert codes == ["DKP-NEW000", "DKP-MID000", "DKP-OLD000"]

    async def test_keeps_other_keys(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"unrelated": 1}))
        store = LocalFallbackStore(path)
        await store.insert(make_record())
        assert json.loads(path.read_text())["unrelated"] == 1

    async def test_corrupt_file_is_store_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        store = LocalFallbackStore(path)
        with pytest.raises(StoreError):
            await store.insert(make_record())

    async def test_satisfies_protocol(self, tmp_path):
        assert isinstance(LocalFallbackStore(tmp_path / "s.json"), AgreementStore)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSqlAgreementStore:
    async def test_insert_returns_stored_row(self):
        session = make_session()

        async def refresh(row):
            row.id = 42

        session.refresh.side_effect = refresh
        store = SqlAgreementStore(lambda: _SessionContext(session))

        stored = await store.insert(make_record(ip_hash="h", user_agent="ua"))

        assert stored.id == 42
        assert stored.confirmation_code == "DKP-AAAAAA"
        assert stored.ip_hash == "h"
        session.add.assert_called_once()
        session.commit.assert_awaited_once()

    async def test_duplicate_code_is_unique_violation(self):
        session = make_session()
        session.commit.side_effect = IntegrityError(
            "INSERT INTO agreements", {}, _PgError("duplicate key", "23505"),
        )
        store = SqlAgreementStore(lambda: _SessionContext(session))

        with pytest.raises(UniqueViolation):
            await store.insert(make_record())
        session.rollback.assert_awaited_once()

    async def test_other_integrity_error(self):
        session = make_session()
        session.commit.side_effect = IntegrityError(
            "INSERT INTO agreements", {}, _PgError("null value in column", "23502"),
        )
        store = SqlAgreementStore(lambda: _SessionContext(session))

        with pytest.raises(StoreError) as excinfo:
            await store.insert(make_record())
        assert not isinstance(excinfo.value, UniqueViolation)

    async def test_operational_error(self):
        session = make_session()
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
        store = SqlAgreementStore(lambda: _SessionContext(session))

        with pytest.raises(StoreError) as excinfo:
            await store.insert(make_record())
        assert not isinstance(excinfo.value, UniqueViolation)

    async def test_query_all(self):
        session = make_session()
        result = MagicMock()
        result.scalars.return_value.all.return_value = [make_record("DKP-ROW001")]
        session.execute.return_value = result
        store = SqlAgreementStore(lambda: _SessionContext(session))

        records = await store.query_all()

        assert [r.confirmation_code for r in records] == ["DKP-ROW001"]

    async def test_unique_violation_by_message(self):
        exc = IntegrityError(
            "INSERT", {}, Exception('duplicate key value violates unique constraint "ix"'),
        )
        assert is_unique_violation(exc)


@pytest.mark.unit
@pytest.mark.asyncio
class TestMemorySessionFlagStore:
    async def test_flags(self, session_store):
        sid = "a" * 32
        assert await session_store.is_unlocked(sid) is False
        await session_store.mark_unlocked(sid)
        await session_store.add_completed(sid, 2)
        await session_store.add_completed(sid, 2)
        await session_store.mark_signed(sid)

        assert await session_store.is_unlocked(sid) is True
        assert await session_store.completed(sid) == {2}
        assert await session_store.is_signed(sid) is True

    async def test_expiry(self, session_store, clock):
        sid = "a" * 32
        await session_store.mark_unlocked(sid)
        clock.advance(3599)
        assert await session_store.is_unlocked(sid) is True
        clock.advance(1)
        assert await session_store.is_unlocked(sid) is False

    async def test_satisfies_protocol(self):
        assert isinstance(MemorySessionFlagStore(ttl_seconds=1), SessionFlagStore)

    async def test_write_sweeps_expired_sessions(self, session_store, clock):
        for sid in ("a" * 32, "b" * 32):
            await session_store.mark_unlocked(sid)
            await session_store.add_completed(sid, 1)
        assert session_store.key_count() == 4

        clock.advance(3600)
        await session_store.mark_unlocked("c" * 32)

        assert session_store.key_count() == 1


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisSessionFlagStore:
    async def test_reads_flags(self):
        client = MagicMock()
        client.get = AsyncMock(return_value="1")
        client.smembers = AsyncMock(return_value={"1", "3"})
        store = RedisSessionFlagStore(client, ttl_seconds=60)

        assert await store.is_unlocked("a" * 32) is True
        assert await store.completed("a" * 32) == {1, 3}
        client.get.assert_awaited_with(f"rulesgate:session:{'a' * 32}:unlocked")

    async def test_mark_unlocked_sets_ttl(self):
        client = MagicMock()
        client.set = AsyncMock()
        store = RedisSessionFlagStore(client, ttl_seconds=60)

        await store.mark_unlocked("a" * 32)

        client.set.assert_awaited_once_with(
            f"rulesgate:session:{'a' * 32}:unlocked", "1", ex=60,
        )
