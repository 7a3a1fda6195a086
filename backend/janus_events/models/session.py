"""Session and handle lifecycle events."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import Base


class SessionEvent(Base):
    """Janus session created/destroyed/timeout notifications (type 1)."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    event: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<SessionEvent {self.session} {self.event}>"


class HandleEvent(Base):
    """Handle attached/detached notifications (type 2)."""

    __tablename__ = "handles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    event: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plugin: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<HandleEvent {self.session}/{self.handle} {self.event}>"
