# File: entitygen/runtime.py
"""
entitygen - Runtime Support for Generated Code
================================================
Small library imported by the modules ``entitygen`` emits.  It holds the
parts of the generated repositories that are identical for every entity:

    * dynamic query assembly (filter binding, pagination, partial updates)
    * identifier generation (time-ordered UUIDs)
    * authorization policy errors and operation kinds
    * change-notification publishing and subscription
    * transaction scoping with classified failures

Generated code talks to Postgres through an asyncpg-style executor
(``fetch`` / ``fetchrow`` / ``execute``) with ``$n`` positional parameters;
nothing in this module imports a driver.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.runtime")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_LIMIT: int = 100
DEFAULT_OFFSET: int = 0
CHANNEL_PREFIX: str = "entity_"

EventT = TypeVar("EventT")


# ---------------------------------------------------------------------------
# Executor protocol
# ---------------------------------------------------------------------------


class Executor(Protocol):
    """The subset of ``asyncpg.Connection`` / ``asyncpg.Pool`` in use."""

    async def fetch(self, query: str, *args: Any) -> List[Any]: ...

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]: ...

    async def execute(self, query: str, *args: Any) -> str: ...


def affected_rows(status: str) -> int:
    """
    Row count from an asyncpg command status.

    Examples:
        >>> affected_rows("DELETE 1")
        1
        >>> affected_rows("UPDATE 0")
        0
    """
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


# ---------------------------------------------------------------------------
# Query assembly
# ---------------------------------------------------------------------------


def escape_like(value: str) -> str:
    r"""Escape ``\``, ``%`` and ``_`` so *value* matches literally in LIKE."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_pattern(value: str) -> str:
    """Substring pattern: ``%<escaped value>%``."""
    return f"%{escape_like(value)}%"


def bind_conditions(
    candidates: Iterable[Tuple[str, Any]],
    *,
    start: int = 1,
) -> Tuple[List[str], List[Any]]:
    """
    Turn ``(template, value)`` pairs into SQL conditions and bind values.

    Each template holds one ``{}`` placeholder for the parameter number.
    Pairs whose value is ``None`` are absent and produce nothing.  The
    condition and its value are appended in the same step, so the n-th
    condition always binds the n-th value.

    Example:
        >>> bind_conditions([("a = ${}", 1), ("b = ${}", None), ("c >= ${}", 3)])
        (['a = $1', 'c >= $2'], [1, 3])
    """
    conditions: List[str] = []
    params: List[Any] = []
    for template, value in candidates:
        if value is None:
            continue
        params.append(value)
        conditions.append(template.format(start + len(params) - 1))
    return conditions, params


def build_select(
    columns: str,
    table: str,
    candidates: Iterable[Tuple[str, Any]] = (),
    *,
    order_by: str,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    static_conditions: Sequence[str] = (),
) -> Tuple[str, List[Any]]:
    """
    Paginated SELECT with optional dynamic filters.

    *static_conditions* take no parameter and come first.  The WHERE clause
    is omitted when no condition applies.  ``LIMIT`` and ``OFFSET`` always
    take the two parameter numbers after the last filter value.
    """
    conditions, params = bind_conditions(candidates)
    where: List[str] = [*static_conditions, *conditions]

    sql: str = f"SELECT {columns} FROM {table}"
    if where:
        sql += " WHERE " + " AND ".join(where)
    next_index: int = len(params) + 1
    sql += f" ORDER BY {order_by} DESC LIMIT ${next_index} OFFSET ${next_index + 1}"

    params.append(DEFAULT_LIMIT if limit is None else limit)
    params.append(DEFAULT_OFFSET if offset is None else offset)
    return sql, params


def build_update(
    table: str,
    id_column: str,
    entity_id: Any,
    changes: Mapping[str, Any],
    *,
    soft_delete: bool = False,
    returning: bool = False,
) -> Tuple[str, List[Any]]:
    """
    ``UPDATE`` writing only the columns present in *changes*.

    Raises:
        ValueError: If *changes* is empty.
    """
    if not changes:
        raise ValueError("An UPDATE needs at least one changed column.")

    params: List[Any] = list(changes.values())
    assignments: str = ", ".join(
        f"{column} = ${index}" for index, column in enumerate(changes, start=1)
    )
    params.append(entity_id)

    sql: str = f"UPDATE {table} SET {assignments} WHERE {id_column} = ${len(params)}"
    if soft_delete:
        sql += " AND deleted_at IS NULL"
    if returning:
        sql += " RETURNING *"
    return sql, params


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


def uuid7() -> uuid.UUID:
    """
    Time-ordered UUID (RFC 9562 version 7).

    48 bits of Unix milliseconds followed by 74 random bits, so identifiers
    created later sort after earlier ones.
    """
    timestamp_ms: int = time.time_ns() // 1_000_000
    rand: int = int.from_bytes(os.urandom(10), "big")
    value: int = (timestamp_ms & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76  # version
    value |= ((rand >> 64) & 0x0FFF) << 64  # rand_a
    value |= 0b10 << 62  # variant
    value |= rand & 0x3FFF_FFFF_FFFF_FFFF  # rand_b
    return uuid.UUID(int=value)


def uuid4() -> uuid.UUID:
    return uuid.uuid4()


# ---------------------------------------------------------------------------
# Authorization policy
# ---------------------------------------------------------------------------


class PolicyOperation(str, Enum):
    """Operation a policy check is made for."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    COMMAND = "command"

    @property
    def is_read_only(self) -> bool:
        return self in (PolicyOperation.READ, PolicyOperation.LIST)

    @property
    def is_mutation(self) -> bool:
        return not self.is_read_only


class PolicyError(Exception):
    """
    Failure of a policy-guarded repository call.

    ``kind`` is ``"policy"`` when the check denied the call and
    ``"repository"`` when the check passed but the repository failed.
    The original exception is available as ``cause`` and ``__cause__``.
    """

    def __init__(
        self,
        kind: str,
        cause: BaseException,
        operation: Optional[PolicyOperation] = None,
    ) -> None:
        self.kind: str = kind
        self.cause: BaseException = cause
        self.operation: Optional[PolicyOperation] = operation
        prefix: str = "authorization denied" if kind == "policy" else "repository error"
        super().__init__(f"{prefix}: {cause}")

    @classmethod
    def policy(
        cls, cause: BaseException, operation: Optional[PolicyOperation] = None
    ) -> "PolicyError":
        return cls("policy", cause, operation)

    @classmethod
    def repository(
        cls, cause: BaseException, operation: Optional[PolicyOperation] = None
    ) -> "PolicyError":
        return cls("repository", cause, operation)

    @property
    def is_policy(self) -> bool:
        return self.kind == "policy"

    @property
    def is_repository(self) -> bool:
        return self.kind == "repository"


class PermissionDenied(Exception):
    """Raised by policy checks to refuse an operation."""


# ---------------------------------------------------------------------------
# Change notifications
# ---------------------------------------------------------------------------


def channel_name(table: str) -> str:
    """Notification channel of a table: ``entity_<table>``."""
    return f"{CHANNEL_PREFIX}{table}"


async def publish(executor: Executor, channel: str, payload: str) -> None:
    """Send *payload* on *channel* through ``pg_notify``."""
    await executor.execute("SELECT pg_notify($1, $2)", channel, payload)


class StreamError(Exception):
    """Base class of subscriber failures."""

    @property
    def is_database(self) -> bool:
        return isinstance(self, StreamTransportError)

    @property
    def is_deserialize(self) -> bool:
        return isinstance(self, StreamDecodeError)


class StreamTransportError(StreamError):
    """The notification connection failed or was closed."""

    def __init__(self, cause: Any) -> None:
        self.cause: Any = cause
        super().__init__(f"database error: {cause}")


class StreamDecodeError(StreamError):
    """A payload arrived but is not a valid event."""

    def __init__(self, detail: str) -> None:
        self.detail: str = detail
        super().__init__(f"deserialize error: {detail}")


class _Closed:
    """Queue marker for a terminated listener connection."""

    __slots__ = ()


_CLOSED: _Closed = _Closed()


class NotificationSubscriber(Generic[EventT]):
    """
    Receives events published on one channel.

    Works over an asyncpg connection (``add_listener`` /
    ``remove_listener`` / ``add_termination_listener``).  Notifications are
    buffered in an ``asyncio.Queue``; a closed connection is reported as a
    ``StreamTransportError`` and every later receive fails the same way.

    Usage::

        subscriber = await NotificationSubscriber.listen(conn, channel, decode)
        event = await subscriber.recv()
    """

    def __init__(
        self,
        connection: Any,
        channel: str,
        decode: Callable[[str], EventT],
    ) -> None:
        self._connection: Any = connection
        self._channel: str = channel
        self._decode: Callable[[str], EventT] = decode
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed: bool = False

    @classmethod
    async def listen(
        cls,
        connection: Any,
        channel: str,
        decode: Callable[[str], EventT],
    ) -> "NotificationSubscriber[EventT]":
        subscriber: NotificationSubscriber[EventT] = cls(connection, channel, decode)
        await connection.add_listener(channel, subscriber._on_notification)
        connection.add_termination_listener(subscriber._on_termination)
        logger.debug("Listening on channel %s.", channel)
        return subscriber

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        self._queue.put_nowait(payload)

    def _on_termination(self, connection: Any) -> None:
        self._queue.put_nowait(_CLOSED)

    def _unwrap(self, item: Any) -> EventT:
        if item is _CLOSED:
            self._closed = True
            raise StreamTransportError(f"connection listening on '{self._channel}' closed")
        try:
            return self._decode(item)
        except (ValueError, TypeError, KeyError) as exc:
            raise StreamDecodeError(str(exc)) from exc

    async def recv(self) -> EventT:
        """Wait for the next event."""
        if self._closed:
            raise StreamTransportError(f"connection listening on '{self._channel}' closed")
        return self._unwrap(await self._queue.get())

    async def try_recv(self) -> Optional[EventT]:
        """Next buffered event, or ``None`` when nothing is waiting."""
        if self._closed:
            raise StreamTransportError(f"connection listening on '{self._channel}' closed")
        try:
            item: Any = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return self._unwrap(item)

    async def close(self) -> None:
        """Stop listening; the connection itself stays open."""
        if not self._closed:
            await self._connection.remove_listener(self._channel, self._on_notification)
            self._connection.remove_termination_listener(self._on_termination)
            self._closed = True


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionStage(str, Enum):
    BEGIN = "begin"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    OPERATION = "operation"


_STAGE_MESSAGES = {
    TransactionStage.BEGIN: "failed to begin transaction",
    TransactionStage.COMMIT: "failed to commit transaction",
    TransactionStage.ROLLBACK: "failed to rollback transaction",
    TransactionStage.OPERATION: "transaction operation failed",
}


class TransactionError(Exception):
    """A failure inside ``transaction()``, classified by stage."""

    def __init__(self, stage: TransactionStage, cause: BaseException) -> None:
        self.stage: TransactionStage = stage
        self.cause: BaseException = cause
        super().__init__(f"{_STAGE_MESSAGES[stage]}: {cause}")

    @property
    def is_begin(self) -> bool:
        return self.stage == TransactionStage.BEGIN

    @property
    def is_commit(self) -> bool:
        return self.stage == TransactionStage.COMMIT

    @property
    def is_rollback(self) -> bool:
        return self.stage == TransactionStage.ROLLBACK

    @property
    def is_operation(self) -> bool:
        return self.stage == TransactionStage.OPERATION

    def into_inner(self) -> BaseException:
        return self.cause


@asynccontextmanager
async def transaction(pool: Any) -> AsyncIterator[Any]:
    """
    Acquire a connection from *pool* and run the block in a transaction.

    The block's exception (if any) triggers a rollback and is re-raised as
    ``TransactionError`` with stage ``OPERATION``; begin, commit and
    rollback failures get their own stage.  Cancellation is rolled back and
    propagated unchanged.

    Usage::

        async with transaction(pool) as conn:
            repo = PostgresUserRepository(conn)
            await repo.create(dto)
    """
    async with pool.acquire() as connection:
        tx: Any = connection.transaction()
        try:
            await tx.start()
        except Exception as exc:
            raise TransactionError(TransactionStage.BEGIN, exc) from exc

        try:
            yield connection
        except BaseException as exc:
            try:
                await tx.rollback()
            except Exception as rollback_exc:
                raise TransactionError(TransactionStage.ROLLBACK, rollback_exc) from exc
            if isinstance(exc, Exception) and not isinstance(exc, TransactionError):
                raise TransactionError(TransactionStage.OPERATION, exc) from exc
            raise

        try:
            await tx.commit()
        except Exception as exc:
            raise TransactionError(TransactionStage.COMMIT, exc) from exc


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DEFAULT_LIMIT",
    "DEFAULT_OFFSET",
    "Executor",
    "affected_rows",
    "escape_like",
    "like_pattern",
    "bind_conditions",
    "build_select",
    "build_update",
    "uuid7",
    "uuid4",
    "PolicyOperation",
    "PolicyError",
    "PermissionDenied",
    "channel_name",
    "publish",
    "StreamError",
    "StreamTransportError",
    "StreamDecodeError",
    "NotificationSubscriber",
    "TransactionStage",
    "TransactionError",
    "transaction",
]

logger.debug("entitygen.runtime loaded — %d public symbols.", len(__all__))
