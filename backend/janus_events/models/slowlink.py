"""Slowlink notifications, stored only where the table was migrated."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from janus_events.database import OptionalBase


class Slowlink(OptionalBase):
    __tablename__ = "slowlinks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    handle: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
