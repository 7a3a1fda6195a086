"""Plugin, transport and core events (types 64, 128 and 256)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import Base


class PluginEvent(Base):
    __tablename__ = "plugins"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    plugin: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # serialized JSON of event.data, "null" when absent
    event: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class TransportEvent(Base):
    __tablename__ = "transports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    plugin: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class CoreStatus(Base):
    """Global server status, not bound to a session."""

    __tablename__ = "core"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(30), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
