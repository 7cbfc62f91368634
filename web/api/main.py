"""FastAPI application factory for the Clubhouse site."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, load_settings
from store import CredentialStore, Database
from web.auth import get_session, hash_password
from web.errors import AuthRequired, NotAuthorized, PersistenceError, ValidationFailed
from web.schemas import SignupForm, validate_form
from web.sessions import SessionManager
from web.api.admin_routes import router as admin_router
from web.api.routes import router as site_router
from web.api.utils import render

logger = logging.getLogger("clubhouse.web")

GENERIC_ERROR = "Something went wrong. Please try again."


async def prepare(app: FastAPI) -> None:
    """Create tables, drop expired sessions and seed the initial admin if configured."""
    settings: Settings = app.state.settings
    await app.state.database.init()
    await app.state.sessions.purge_expired()
    if settings.initial_admin_password and settings.initial_admin_email:
        await _seed_admin(app, settings)


async def _seed_admin(app: FastAPI, settings: Settings) -> None:
    # Same rules as signup, so the seeded account can log in through the login form
    try:
        body = validate_form(
            SignupForm,
            {
                "username": settings.initial_admin_username,
                "email": settings.initial_admin_email,
                "password": settings.initial_admin_password,
            },
        )
    except ValidationFailed as e:
        logger.warning("Initial admin not seeded: %s", e.message)
        return
    await app.state.users.ensure_admin(body.username, body.email, hash_password(body.password))


async def _page_session(request: Request) -> None:
    """Resolve the session for error pages. A failing session lookup leaves the page anonymous."""
    try:
        await get_session(request)
    except PersistenceError:
        pass


async def _auth_required(request: Request, exc: AuthRequired):
    return RedirectResponse(exc.redirect_to, status_code=302)


async def _not_authorized(request: Request, exc: NotAuthorized):
    return render(request, "error.html", {"error": exc.message}, status_code=403)


async def _persistence_failed(request: Request, exc: PersistenceError):
    logger.error("Request to %s failed on persistence: %s", request.url.path, exc)
    await _page_session(request)
    return render(request, "error.html", {"error": GENERIC_ERROR}, status_code=500)


async def _http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        await _page_session(request)
        return render(request, "404.html", status_code=404)
    return await http_exception_handler(request, exc)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app with its own database, credential store and session manager."""
    settings = settings or load_settings()
    database = Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await prepare(app)
        yield
        await database.dispose()

    app = FastAPI(title="Clubhouse", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.users = CredentialStore(database)
    app.state.sessions = SessionManager(
        database,
        secret=settings.session_secret,
        max_age=settings.session_max_age,
    )

    app.add_exception_handler(AuthRequired, _auth_required)
    app.add_exception_handler(NotAuthorized, _not_authorized)
    app.add_exception_handler(PersistenceError, _persistence_failed)
    app.add_exception_handler(StarletteHTTPException, _http_error)

    app.include_router(site_router)
    app.include_router(admin_router)
    return app
