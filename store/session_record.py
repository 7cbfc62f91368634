"""Server-side session record, addressed by the opaque id inside the session cookie."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from store.base import Base


class SessionRecord(Base):
    """One browser session. expires_at is naive UTC."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
