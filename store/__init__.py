"""Database models and stores."""
from store.base import Base, Database
from store.session_record import SessionRecord
from store.user import ROLES, User
from store.users import CredentialStore, DuplicateError, PersistenceError

__all__ = [
    "Base",
    "Database",
    "SessionRecord",
    "User",
    "ROLES",
    "CredentialStore",
    "DuplicateError",
    "PersistenceError",
]
