"""Media state and periodic RTCP statistics (type 32)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import Base


class MediaState(Base):
    """A medium started or stopped receiving."""

    __tablename__ = "media"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    medium: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receiving: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class MediaStats(Base):
    """Per-medium counters reported by the core every few seconds."""

    __tablename__ = "stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    subtype: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mindex: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    codec: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    medium: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # RTCP
    base: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    lsr: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    lostlocal: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    lostremote: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    jitterlocal: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    jitterremote: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Counters
    packetssent: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    packetsrecv: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    bytessent: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    bytesrecv: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    nackssent: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    nacksrecv: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Round trip
    rtt: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rtt_ntp: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rtt_lsr: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rtt_dlsr: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Link quality (0-100)
    in_link_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    in_media_link_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    out_link_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    out_media_link_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    bytes_sent_lastsec: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    bytes_recv_lastsec: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    retransmissions_recv: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
