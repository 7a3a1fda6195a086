"""Persistence sinks for normalized Janus records."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy import insert as sa_insert
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from janus_events.models import (
    ConnectionState,
    CoreStatus,
    DtlsState,
    HandleEvent,
    IceState,
    MediaState,
    MediaStats,
    PluginEvent,
    Sdp,
    SelectedPair,
    SessionEvent,
    SipCall,
    Slowlink,
    TransportEvent,
)
from janus_events.schemas.records import EventRecord, RecordKind, SipCallRecord
from janus_events.utils.exceptions import PersistenceError, SchemaMissingError


TABLES: Dict[RecordKind, type] = {
    RecordKind.SESSION: SessionEvent,
    RecordKind.HANDLE: HandleEvent,
    RecordKind.JSEP: Sdp,
    RecordKind.ICE: IceState,
    RecordKind.SELECTED_PAIR: SelectedPair,
    RecordKind.DTLS: DtlsState,
    RecordKind.CONNECTION: ConnectionState,
    RecordKind.MEDIA: MediaState,
    RecordKind.STATS: MediaStats,
    RecordKind.PLUGIN: PluginEvent,
    RecordKind.TRANSPORT: TransportEvent,
    RecordKind.CORE: CoreStatus,
    RecordKind.SLOWLINK: Slowlink,
}

UNDEFINED_TABLE_SQLSTATE = "42P01"


def is_undefined_table(exc: BaseException) -> bool:
    """True for PostgreSQL 42P01 and SQLite's ``no such table``."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == UNDEFINED_TABLE_SQLSTATE:
        return True
    message = str(orig if orig is not None else exc).lower()
    if "no such table" in message:
        return True
    return "relation" in message and "does not exist" in message


class PersistenceSink(ABC):
    """Store for normalized records.

    Append-only kinds go through :meth:`insert`. SIP correlations are merged
    with :meth:`upsert_sip_call`. :meth:`insert_optional` targets tables a
    deployment may lack and raises :class:`SchemaMissingError` in that case.
    """

    @abstractmethod
    async def insert(self, record: EventRecord) -> None:
        ...

    @abstractmethod
    async def upsert_sip_call(self, record: SipCallRecord) -> None:
        ...

    @abstractmethod
    async def insert_optional(self, record: EventRecord) -> None:
        ...


class SqlAlchemySink(PersistenceSink):
    """Writes records through a shared async engine pool, one transaction per write."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def insert(self, record: EventRecord) -> None:
        model = TABLES[record.kind]
        await self._execute(sa_insert(model).values(**record.columns()), model.__tablename__)

    async def insert_optional(self, record: EventRecord) -> None:
        await self.insert(record)

    async def upsert_sip_call(self, record: SipCallRecord) -> None:
        async with self.session_maker() as db:
            dialect = db.get_bind().dialect.name
            stmt = self._sip_upsert_statement(dialect, record.columns())
            await self._run(db, stmt, SipCall.__tablename__)

    @staticmethod
    def _sip_upsert_statement(dialect: str, values: Dict[str, Any]):
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            insert_stmt = insert_fn(SipCall).values(**values)
            return insert_stmt.on_conflict_do_update(
                index_elements=[SipCall.call_id],
                set_={
                    "session": insert_stmt.excluded.session,
                    "handle": insert_stmt.excluded.handle,
                    "from_uri": insert_stmt.excluded.from_uri,
                    "to_uri": insert_stmt.excluded.to_uri,
                    "direction": func.coalesce(SipCall.direction, insert_stmt.excluded.direction),
                },
            )
        if dialect in ("mysql", "mariadb"):
            insert_stmt = mysql_insert(SipCall).values(**values)
            return insert_stmt.on_duplicate_key_update(
                session=insert_stmt.inserted.session,
                handle=insert_stmt.inserted.handle,
                from_uri=insert_stmt.inserted.from_uri,
                to_uri=insert_stmt.inserted.to_uri,
                direction=func.coalesce(SipCall.direction, insert_stmt.inserted.direction),
            )
        raise PersistenceError(
            f"atomic upsert not supported for dialect '{dialect}'", table=SipCall.__tablename__
        )

    async def _execute(self, stmt, table: str) -> None:
        async with self.session_maker() as db:
            await self._run(db, stmt, table)

    @staticmethod
    async def _run(db: AsyncSession, stmt, table: str) -> None:
        try:
            await db.execute(stmt)
            await db.commit()
        except DBAPIError as e:
            await db.rollback()
            if is_undefined_table(e):
                raise SchemaMissingError(table) from e
            raise PersistenceError(str(e.orig or e), table=table) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(str(e), table=table) from e


class MemorySink(PersistenceSink):
    """Keeps every write in memory, in order, for assertions.

    ``missing_tables`` simulates deployments without a table and
    ``failing_kinds`` makes writes of those kinds fail.
    """

    def __init__(
        self,
        missing_tables: Optional[Set[str]] = None,
        failing_kinds: Optional[Set[RecordKind]] = None,
    ):
        self.missing_tables: Set[str] = set(missing_tables or ())
        self.failing_kinds: Set[RecordKind] = set(failing_kinds or ())
        self.writes: List[Tuple[RecordKind, Dict[str, Any]]] = []
        self.sip_calls: Dict[str, Dict[str, Any]] = {}

    def records(self, kind: Optional[RecordKind] = None) -> List[Dict[str, Any]]:
        return [values for k, values in self.writes if kind is None or k == kind]

    def _check(self, kind: RecordKind, table: str) -> None:
        if table in self.missing_tables:
            raise SchemaMissingError(table)
        if kind in self.failing_kinds:
            raise PersistenceError(f"write to '{table}' failed", table=table)

    async def insert(self, record: EventRecord) -> None:
        self._check(record.kind, TABLES[record.kind].__tablename__)
        self.writes.append((record.kind, record.columns()))

    async def insert_optional(self, record: EventRecord) -> None:
        await self.insert(record)

    async def upsert_sip_call(self, record: SipCallRecord) -> None:
        self._check(record.kind, SipCall.__tablename__)
        values = record.columns()
        existing = self.sip_calls.get(record.call_id)
        if existing is not None:
            for key in ("session", "handle", "from_uri", "to_uri"):
                existing[key] = values[key]
            if existing.get("direction") is None:
                existing["direction"] = values["direction"]
            values = dict(existing)
        else:
            self.sip_calls[record.call_id] = dict(values)
        self.writes.append((record.kind, values))
