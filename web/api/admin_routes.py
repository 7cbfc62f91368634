"""Admin routes: user list and role promotion/demotion."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from store import CredentialStore, PersistenceError
from web.auth import require_admin
from web.sessions import Authenticated
from web.api.routes import get_credential_store
from web.api.utils import render

logger = logging.getLogger("clubhouse.web")

router = APIRouter(tags=["admin"])


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(
    request: Request,
    admin: Authenticated = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """List all users (admin only)."""
    users = await store.list_all()
    return render(request, "admin.html", {"users": users})


async def _change_role(request: Request, store: CredentialStore, user_id: str, role: str, verb: str):
    try:
        await store.set_role(user_id, role)
    except PersistenceError:
        logger.error("Error trying to %s user %s", verb, user_id)
        return render(
            request,
            "error.html",
            {"error": f"Failed to {verb} user. Please try again."},
            status_code=500,
        )
    return RedirectResponse("/admin", status_code=302)


@router.get("/promote/{user_id}")
async def promote(
    request: Request,
    user_id: str,
    admin: Authenticated = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """Give a user the admin role. Unknown ids are a no-op."""
    logger.info("%s promoting %s", admin.username, user_id)
    return await _change_role(request, store, user_id, "admin", "promote")


@router.get("/demote/{user_id}")
async def demote(
    request: Request,
    user_id: str,
    admin: Authenticated = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """Return a user to the plain user role. Unknown ids are a no-op."""
    logger.info("%s demoting %s", admin.username, user_id)
    return await _change_role(request, store, user_id, "user", "demote")
