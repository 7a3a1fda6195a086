"""JSEP negotiation and WebRTC transport state rows (types 8 and 16)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import Base


class Sdp(Base):
    """Offer or answer exchanged on a handle."""

    __tablename__ = "sdps"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    remote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sdp: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class IceState(Base):
    __tablename__ = "ice"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    stream: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    component: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    state: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class SelectedPair(Base):
    __tablename__ = "selectedpairs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    stream: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    component: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    selected: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class DtlsState(Base):
    __tablename__ = "dtls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    state: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class ConnectionState(Base):
    __tablename__ = "connections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    state: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
