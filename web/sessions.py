"""Server-side sessions: tagged session state, signed cookie token, lazy expiry."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

import jwt
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from store import Database, PersistenceError, SessionRecord

logger = logging.getLogger("clubhouse.sessions")

TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Anonymous:
    """No login on this browser context."""

    authenticated = False


@dataclass(frozen=True)
class Authenticated:
    username: str
    role: str
    expires_at: datetime

    authenticated = True

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


Session = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


def utcnow() -> datetime:
    """Naive UTC, matching what the sessions table stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionManager:
    """Creates, resolves and destroys session records.

    The cookie carries only a signed opaque session id; username, role and expiry
    live in the sessions table.
    """

    def __init__(
        self,
        database: Database,
        *,
        secret: str,
        max_age: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.database = database
        self.secret = secret
        self.max_age = max_age
        self.clock = clock

    def _encode(self, session_id: str) -> str:
        return jwt.encode({"sid": session_id}, self.secret, algorithm=TOKEN_ALGORITHM)

    def _decode(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[TOKEN_ALGORITHM])
        except jwt.InvalidTokenError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) and sid else None

    async def establish(self, token: Optional[str], username: str, role: str) -> str:
        """Authenticate the browser session behind token. Returns the new cookie value.

        The record is always re-keyed under a fresh id, so a cookie planted before
        login never becomes an authenticated one.
        """
        expires_at = self.clock() + timedelta(seconds=self.max_age)
        old_id = self._decode(token)
        session_id = secrets.token_urlsafe(32)
        try:
            async with self.database.session_factory() as db:
                if old_id:
                    await db.execute(delete(SessionRecord).where(SessionRecord.session_id == old_id))
                db.add(SessionRecord(session_id=session_id, username=username, role=role, expires_at=expires_at))
                await db.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to store session for %s", username)
            raise PersistenceError("Failed to store session") from e
        return self._encode(session_id)

    async def resolve(self, token: Optional[str]) -> Session:
        """Session state for a cookie value. Expired records are deleted on discovery."""
        session_id = self._decode(token)
        if not session_id:
            return ANONYMOUS
        try:
            async with self.database.session_factory() as db:
                record = await db.get(SessionRecord, session_id)
                if record is None:
                    return ANONYMOUS
                if record.expires_at <= self.clock():
                    logger.info("Session for %s expired", record.username)
                    await db.delete(record)
                    await db.commit()
                    return ANONYMOUS
                return Authenticated(username=record.username, role=record.role, expires_at=record.expires_at)
        except SQLAlchemyError as e:
            logger.exception("Failed to load session")
            raise PersistenceError("Failed to load session") from e

    async def destroy(self, token: Optional[str]) -> None:
        session_id = self._decode(token)
        if not session_id:
            return
        try:
            async with self.database.session_factory() as db:
                await db.execute(delete(SessionRecord).where(SessionRecord.session_id == session_id))
                await db.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to destroy session")
            raise PersistenceError("Failed to destroy session") from e

    async def purge_expired(self) -> int:
        """Delete every expired record. Returns how many were removed."""
        try:
            async with self.database.session_factory() as db:
                result = await db.execute(delete(SessionRecord).where(SessionRecord.expires_at <= self.clock()))
                await db.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to purge expired sessions")
            raise PersistenceError("Failed to purge sessions") from e
        if result.rowcount:
            logger.info("Purged %d expired session(s)", result.rowcount)
        return result.rowcount
