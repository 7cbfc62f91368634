"""Web-layer errors, turned into responses by the handlers registered in web.api.main."""
from __future__ import annotations

from store.users import DuplicateError, PersistenceError

__all__ = [
    "AuthRequired",
    "DuplicateError",
    "NotAuthorized",
    "PersistenceError",
    "ValidationFailed",
]


class ValidationFailed(Exception):
    """Input did not match its schema. message is the first violation, fit for display."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthRequired(Exception):
    """No authenticated session. Answered with a redirect."""

    def __init__(self, redirect_to: str = "/login") -> None:
        super().__init__(redirect_to)
        self.redirect_to = redirect_to


class NotAuthorized(Exception):
    """Authenticated, but the role is insufficient. Answered with a 403 page."""

    def __init__(self, message: str = "Not Authorized - You must be an admin to access this page.") -> None:
        super().__init__(message)
        self.message = message
