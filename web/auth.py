"""Authentication for the web app: password hashing, session lookup, role gates."""
from __future__ import annotations

import hashlib
from typing import Optional

from fastapi import Depends, Request
from fastapi.responses import Response
from passlib.context import CryptContext

import config
from web.errors import AuthRequired, NotAuthorized
from web.sessions import Authenticated, Session, SessionManager

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(_prepare_password(plain), hashed)
    except (ValueError, TypeError):
        # Unrecognised or malformed hash
        return False


# --- Session cookie ---


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(request.app.state.settings.session_cookie_name)


def set_session_cookie(request: Request, response: Response, token: str) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def clear_session_cookie(request: Request, response: Response) -> None:
    response.delete_cookie(request.app.state.settings.session_cookie_name)


# --- Dependencies ---


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def get_session(request: Request) -> Session:
    """Resolve the request's session once and cache it on request.state."""
    cached = getattr(request.state, "session", None)
    if cached is not None:
        return cached
    session = await get_session_manager(request).resolve(session_token(request))
    request.state.session = session
    return session


def require_authenticated(redirect_to: str = "/login"):
    """Dependency factory: anonymous requests are redirected to redirect_to."""

    async def _dep(session: Session = Depends(get_session)) -> Authenticated:
        if not isinstance(session, Authenticated):
            raise AuthRequired(redirect_to)
        return session

    return _dep


async def require_admin(
    session: Authenticated = Depends(require_authenticated("/login")),
) -> Authenticated:
    """Require a logged-in admin. Raises NotAuthorized (403) otherwise."""
    if not session.is_admin:
        raise NotAuthorized()
    return session
