"""Credential store: the users collection."""
from __future__ import annotations

import logging
from typing import Any, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from store.base import Database
from store.user import ROLES, User

logger = logging.getLogger("clubhouse.store")


class PersistenceError(Exception):
    """A database operation failed."""


class DuplicateError(PersistenceError):
    """A uniqueness constraint was violated."""


# Query-document operators understood by find_by_username, mapped to column comparisons.
_OPERATORS = {
    "$eq": lambda col, v: col == v,
    "$ne": lambda col, v: col != v,
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
    "$in": lambda col, v: col.in_(_as_list(v)),
    "$nin": lambda col, v: col.not_in(_as_list(v)),
}


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, dict):
        # user[$in][0]=a&user[$in][1]=b arrives as {"0": "a", "1": "b"}
        return list(value.values())
    return [value]


def _field_clauses(column, value: Union[str, dict]) -> list:
    """Translate a query-document field value into SQL clauses.

    A plain value is an equality match. A dict is a set of operators, all of which
    must hold. This mirrors how a document database treats an untrusted value that
    happens to be an object, which is what makes it injectable.
    """
    if not isinstance(value, dict):
        return [column == value]
    clauses = []
    for op, operand in value.items():
        build = _OPERATORS.get(op)
        if build is None:
            raise ValueError(f"unknown query operator: {op}")
        clauses.append(build(column, operand))
    return clauses


class CredentialStore:
    """User persistence. Every SQLAlchemy failure surfaces as PersistenceError."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def create(self, username: str, email: str, password_hash: str, role: str = "user") -> str:
        """Insert a user and return the new id."""
        if role not in ROLES:
            raise ValueError(f"invalid role: {role}")
        try:
            async with self.database.session_factory() as session:
                user = User(username=username, email=email, password_hash=password_hash, role=role)
                session.add(user)
                await session.commit()
                return user.id
        except IntegrityError as e:
            logger.info("Duplicate signup rejected for email %s", email)
            raise DuplicateError("An account with that email already exists") from e
        except SQLAlchemyError as e:
            logger.exception("Failed to create user %s", username)
            raise PersistenceError("Failed to create user") from e

    async def find_by_email(self, email: str) -> Optional[User]:
        try:
            async with self.database.session_factory() as session:
                result = await session.execute(select(User).where(User.email == email))
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.exception("Failed to look up user by email")
            raise PersistenceError("Failed to look up user") from e

    async def find_by_username(self, username: Union[str, dict]) -> list[User]:
        """All users matching username, which is used as-is as the query value.

        Passing an operator document such as {"$ne": "x"} matches every other user.
        Only call this with input that has already been shape-checked.
        """
        clauses = _field_clauses(User.username, username)
        try:
            async with self.database.session_factory() as session:
                result = await session.execute(select(User).where(*clauses).order_by(User.username))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.exception("Failed to look up users by username")
            raise PersistenceError("Failed to look up users") from e

    async def list_all(self) -> list[User]:
        try:
            async with self.database.session_factory() as session:
                result = await session.execute(select(User).order_by(User.username))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.exception("Failed to list users")
            raise PersistenceError("Failed to list users") from e

    async def set_role(self, user_id: str, role: str) -> bool:
        """Set a user's role. Returns False when no user has that id."""
        if role not in ROLES:
            raise ValueError(f"invalid role: {role}")
        try:
            async with self.database.session_factory() as session:
                result = await session.execute(update(User).where(User.id == user_id).values(role=role))
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to set role %s on user %s", role, user_id)
            raise PersistenceError("Failed to update role") from e
        matched = result.rowcount > 0
        if matched:
            logger.info("User %s role set to %s", user_id, role)
        else:
            logger.info("Role change ignored: no user with id %s", user_id)
        return matched

    async def ensure_admin(self, username: str, email: str, password_hash: str) -> bool:
        """Create an admin with this email unless a user with it already exists."""
        if await self.find_by_email(email):
            return False
        await self.create(username, email, password_hash, role="admin")
        logger.info("Bootstrapped initial admin %s", username)
        return True
