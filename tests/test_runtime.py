"""
tests/test_runtime.py
Unit tests for entitygen.runtime, the support library of generated code.

Tests cover:
- Command-status parsing and LIKE escaping
- Condition binding order and SELECT / UPDATE assembly
- Time-ordered identifiers
- Policy error classification
- pg_notify publishing and the notification subscriber
- Transaction scoping and failure stages

Async code is driven with ``asyncio.run`` against small in-memory fakes
of the asyncpg connection and pool surface.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable, List, Optional, Tuple

import pytest

from entitygen.runtime import (
    DEFAULT_LIMIT,
    DEFAULT_OFFSET,
    NotificationSubscriber,
    PermissionDenied,
    PolicyError,
    PolicyOperation,
    StreamDecodeError,
    StreamTransportError,
    TransactionError,
    TransactionStage,
    affected_rows,
    bind_conditions,
    build_select,
    build_update,
    channel_name,
    escape_like,
    like_pattern,
    publish,
    transaction,
    uuid7,
)


# ===========================================================================
# Fakes
# ===========================================================================


class FakeExecutor:
    """Records every statement; ``execute`` answers with a fixed status."""

    def __init__(self, status: str = "SELECT 1") -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.status: str = status

    async def execute(self, query: str, *args: Any) -> str:
        self.calls.append((query, args))
        return self.status

    async def fetch(self, query: str, *args: Any) -> List[Any]:
        self.calls.append((query, args))
        return []

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        self.calls.append((query, args))
        return None


class FakeListenConnection:
    """The listener part of an asyncpg connection."""

    def __init__(self) -> None:
        self.listeners: dict = {}
        self.termination: List[Callable[[Any], None]] = []
        self.removed: List[str] = []

    async def add_listener(self, channel: str, callback: Callable[..., None]) -> None:
        self.listeners[channel] = callback

    async def remove_listener(self, channel: str, callback: Callable[..., None]) -> None:
        self.removed.append(channel)
        self.listeners.pop(channel, None)

    def add_termination_listener(self, callback: Callable[[Any], None]) -> None:
        self.termination.append(callback)

    def remove_termination_listener(self, callback: Callable[[Any], None]) -> None:
        self.termination.remove(callback)

    def notify(self, channel: str, payload: str) -> None:
        self.listeners[channel](self, 4242, channel, payload)

    def terminate(self) -> None:
        for callback in self.termination:
            callback(self)


class FakeTransaction:
    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.fail_on: Optional[str] = fail_on
        self.events: List[str] = []

    async def _step(self, name: str) -> None:
        self.events.append(name)
        if self.fail_on == name:
            raise OSError(f"{name} broke")

    async def start(self) -> None:
        await self._step("start")

    async def commit(self) -> None:
        await self._step("commit")

    async def rollback(self) -> None:
        await self._step("rollback")


class FakeTxConnection:
    def __init__(self, tx: FakeTransaction) -> None:
        self.tx: FakeTransaction = tx

    def transaction(self) -> FakeTransaction:
        return self.tx


class _Acquire:
    def __init__(self, pool: "FakePool") -> None:
        self._pool = pool

    async def __aenter__(self) -> FakeTxConnection:
        self._pool.acquired += 1
        return self._pool.connection

    async def __aexit__(self, *exc_info: Any) -> bool:
        self._pool.released += 1
        return False


class FakePool:
    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.tx: FakeTransaction = FakeTransaction(fail_on)
        self.connection: FakeTxConnection = FakeTxConnection(self.tx)
        self.acquired: int = 0
        self.released: int = 0

    def acquire(self) -> _Acquire:
        return _Acquire(self)


# ===========================================================================
# Small helpers
# ===========================================================================


class TestStatusAndPatterns:

    @pytest.mark.parametrize(
        "status, expected",
        [("DELETE 1", 1), ("UPDATE 0", 0), ("INSERT 0 3", 3), ("", 0), ("garbage", 0)],
    )
    def test_affected_rows(self, status: str, expected: int) -> None:
        assert affected_rows(status) == expected

    def test_escape_like(self) -> None:
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"

    def test_like_pattern_wraps(self) -> None:
        assert like_pattern("ann") == "%ann%"
        assert like_pattern("a_b") == "%a\\_b%"


# ===========================================================================
# Query assembly
# ===========================================================================


class TestBindConditions:

    def test_absent_values_are_skipped(self) -> None:
        conditions, params = bind_conditions(
            [("a = ${}", 1), ("b = ${}", None), ("c >= ${}", 3)]
        )
        assert conditions == ["a = $1", "c >= $2"]
        assert params == [1, 3]

    def test_numbering_matches_value_position(self) -> None:
        candidates = [(f"c{i} = ${{}}", None if i % 2 else i) for i in range(6)]
        conditions, params = bind_conditions(candidates)
        for n, (condition, value) in enumerate(zip(conditions, params), start=1):
            assert condition == f"c{value} = ${n}"

    def test_start_offset(self) -> None:
        conditions, _ = bind_conditions([("x = ${}", "v")], start=4)
        assert conditions == ["x = $4"]

    def test_falsy_values_still_bind(self) -> None:
        conditions, params = bind_conditions([("n = ${}", 0), ("f = ${}", False), ("s = ${}", "")])
        assert len(conditions) == 3
        assert params == [0, False, ""]


class TestBuildSelect:

    def test_no_conditions(self) -> None:
        sql, params = build_select("id, name", "public.tags", order_by="id")
        assert sql == "SELECT id, name FROM public.tags ORDER BY id DESC LIMIT $1 OFFSET $2"
        assert params == [DEFAULT_LIMIT, DEFAULT_OFFSET]

    def test_static_then_dynamic(self) -> None:
        sql, params = build_select(
            "id",
            "core.users",
            [("name = ${}", "ann"), ("age >= ${}", None), ("age <= ${}", 40)],
            order_by="id",
            limit=10,
            offset=20,
            static_conditions=["deleted_at IS NULL"],
        )
        assert sql == (
            "SELECT id FROM core.users WHERE deleted_at IS NULL AND name = $1 "
            "AND age <= $2 ORDER BY id DESC LIMIT $3 OFFSET $4"
        )
        assert params == ["ann", 40, 10, 20]

    def test_zero_limit_is_respected(self) -> None:
        _, params = build_select("id", "t", order_by="id", limit=0, offset=0)
        assert params == [0, 0]


class TestBuildUpdate:

    def test_partial_update(self) -> None:
        sql, params = build_update(
            "core.users", "id", "u-1", {"name": "Ann", "age": None},
            soft_delete=True, returning=True,
        )
        assert sql == (
            "UPDATE core.users SET name = $1, age = $2 WHERE id = $3 "
            "AND deleted_at IS NULL RETURNING *"
        )
        assert params == ["Ann", None, "u-1"]

    def test_plain_update(self) -> None:
        sql, params = build_update("t", "id", 7, {"qty": 3})
        assert sql == "UPDATE t SET qty = $1 WHERE id = $2"
        assert params == [3, 7]

    def test_empty_changes_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_update("t", "id", 1, {})


# ===========================================================================
# Identifiers
# ===========================================================================


class TestUuid7:

    def test_version_and_variant(self) -> None:
        value: uuid.UUID = uuid7()
        assert value.version == 7
        assert value.variant == uuid.RFC_4122

    def test_time_ordered(self) -> None:
        first = uuid7()
        time.sleep(0.002)
        second = uuid7()
        assert first < second

    def test_unique(self) -> None:
        assert len({uuid7() for _ in range(200)}) == 200


# ===========================================================================
# Policy errors
# ===========================================================================


class TestPolicyError:

    def test_operation_kinds(self) -> None:
        assert PolicyOperation.READ.is_read_only
        assert PolicyOperation.LIST.is_read_only
        assert PolicyOperation.DELETE.is_mutation
        assert PolicyOperation.COMMAND.is_mutation

    def test_policy_denial(self) -> None:
        cause = PermissionDenied("not the owner")
        error = PolicyError.policy(cause, PolicyOperation.UPDATE)
        assert error.is_policy and not error.is_repository
        assert error.cause is cause
        assert error.operation is PolicyOperation.UPDATE
        assert str(error) == "authorization denied: not the owner"

    def test_repository_failure(self) -> None:
        error = PolicyError.repository(RuntimeError("db down"))
        assert error.is_repository
        assert str(error) == "repository error: db down"


# ===========================================================================
# Notifications
# ===========================================================================


class TestPublish:

    def test_channel_name(self) -> None:
        assert channel_name("users") == "entity_users"

    def test_publish_uses_pg_notify(self) -> None:
        executor = FakeExecutor()
        asyncio.run(publish(executor, "entity_users", '{"kind": "created"}'))
        assert executor.calls == [
            ("SELECT pg_notify($1, $2)", ("entity_users", '{"kind": "created"}'))
        ]


class TestNotificationSubscriber:

    def test_receives_decoded_events(self) -> None:
        async def scenario() -> List[Any]:
            conn = FakeListenConnection()
            sub = await NotificationSubscriber.listen(conn, "entity_users", str.upper)
            assert sub.channel == "entity_users"
            conn.notify("entity_users", "one")
            conn.notify("entity_users", "two")
            return [await sub.recv(), await sub.try_recv(), await sub.try_recv()]

        assert asyncio.run(scenario()) == ["ONE", "TWO", None]

    def test_decode_failure(self) -> None:
        def decode(payload: str) -> int:
            return int(payload)

        async def scenario() -> None:
            conn = FakeListenConnection()
            sub = await NotificationSubscriber.listen(conn, "entity_items", decode)
            conn.notify("entity_items", "not a number")
            with pytest.raises(StreamDecodeError) as exc_info:
                await sub.recv()
            assert exc_info.value.is_deserialize
            assert not sub.closed
            conn.notify("entity_items", "5")
            assert await sub.recv() == 5

        asyncio.run(scenario())

    def test_termination_is_sticky(self) -> None:
        async def scenario() -> None:
            conn = FakeListenConnection()
            sub = await NotificationSubscriber.listen(conn, "entity_items", str)
            conn.terminate()
            with pytest.raises(StreamTransportError) as exc_info:
                await sub.recv()
            assert exc_info.value.is_database
            assert sub.closed
            with pytest.raises(StreamTransportError):
                await sub.try_recv()

        asyncio.run(scenario())

    def test_close_removes_listener(self) -> None:
        async def scenario() -> FakeListenConnection:
            conn = FakeListenConnection()
            sub = await NotificationSubscriber.listen(conn, "entity_items", str)
            await sub.close()
            await sub.close()
            return conn

        conn = asyncio.run(scenario())
        assert conn.removed == ["entity_items"]
        assert conn.termination == []

    def test_reused_connection_has_no_stale_callbacks(self) -> None:
        async def scenario() -> None:
            conn = FakeListenConnection()
            first = await NotificationSubscriber.listen(conn, "entity_items", str)
            await first.close()
            second = await NotificationSubscriber.listen(conn, "entity_items", str)
            assert conn.termination == [second._on_termination]
            conn.terminate()
            with pytest.raises(StreamTransportError):
                await second.recv()

        asyncio.run(scenario())


# ===========================================================================
# Transactions
# ===========================================================================


class TestTransaction:

    def test_commit_on_success(self) -> None:
        pool = FakePool()

        async def scenario() -> None:
            async with transaction(pool) as conn:
                assert conn is pool.connection

        asyncio.run(scenario())
        assert pool.tx.events == ["start", "commit"]
        assert pool.acquired == pool.released == 1

    def test_operation_failure_rolls_back(self) -> None:
        pool = FakePool()

        async def scenario() -> None:
            async with transaction(pool):
                raise KeyError("missing")

        with pytest.raises(TransactionError) as exc_info:
            asyncio.run(scenario())
        error = exc_info.value
        assert error.is_operation
        assert isinstance(error.into_inner(), KeyError)
        assert pool.tx.events == ["start", "rollback"]
        assert pool.released == 1

    @pytest.mark.parametrize(
        "stage, events",
        [
            (TransactionStage.BEGIN, ["start"]),
            (TransactionStage.COMMIT, ["start", "commit"]),
        ],
    )
    def test_begin_and_commit_failures(self, stage: TransactionStage, events: List[str]) -> None:
        pool = FakePool(fail_on="start" if stage is TransactionStage.BEGIN else "commit")

        async def scenario() -> None:
            async with transaction(pool):
                pass

        with pytest.raises(TransactionError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.stage is stage
        assert pool.tx.events == events

    def test_rollback_failure(self) -> None:
        pool = FakePool(fail_on="rollback")

        async def scenario() -> None:
            async with transaction(pool):
                raise ValueError("bad input")

        with pytest.raises(TransactionError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.is_rollback
        assert "failed to rollback transaction" in str(exc_info.value)

    def test_cancellation_propagates_unchanged(self) -> None:
        pool = FakePool()

        async def scenario() -> None:
            async with transaction(pool):
                raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())
        assert pool.tx.events == ["start", "rollback"]
