"""SIP dialog correlation keyed by Call-ID."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import Base


class SipDirection(str, Enum):
    """Call direction as seen from Janus."""
    INBOUND = "in"
    OUTBOUND = "out"


class SipCall(Base):
    """Maps a SIP Call-ID to the Janus session/handle carrying it."""

    __tablename__ = "sip_calls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    call_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    from_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # sticky once known
    direction: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<SipCall {self.call_id} ({self.direction})>"
