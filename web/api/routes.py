"""Public and member routes: home, signup, login, members, logout, injection demo."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from store import CredentialStore, DuplicateError
from web.auth import (
    clear_session_cookie,
    get_session,
    get_session_manager,
    hash_password,
    pwd_context,
    require_authenticated,
    session_token,
    set_session_cookie,
    verify_password,
)
from web.errors import ValidationFailed
from web.schemas import LoginForm, SignupForm, validate_form, validate_lookup
from web.sessions import Authenticated
from web.api.utils import parse_nested_query, pick_member_image, render

logger = logging.getLogger("clubhouse.web")

router = APIRouter(tags=["site"])

INVALID_CREDENTIALS = "Invalid email or password"

INJECTION_HELP = (
    "<h3>no user provided - try /nosql-injection?user=name</h3> "
    "<h3>or /nosql-injection?user[$ne]=name</h3>"
)
INJECTION_DETECTED = "<h1 style='color:darkred;'>A NoSQL injection attack was detected!!</h1>"


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.users


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


async def _start_session(request: Request, username: str, role: str) -> RedirectResponse:
    """Authenticate the browser session and send it to the members area."""
    token = await get_session_manager(request).establish(session_token(request), username, role)
    response = _redirect("/members")
    set_session_cookie(request, response, token)
    return response


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, session=Depends(get_session)):
    return render(request, "index.html")


@router.get("/signup", response_class=HTMLResponse)
async def signup_form(request: Request, session=Depends(get_session)):
    return render(request, "signup.html", {"error_message": None})


@router.post("/signup")
async def signup(
    request: Request,
    session=Depends(get_session),
    store: CredentialStore = Depends(get_credential_store),
):
    """Create an account with role "user" and log it in."""
    form = await request.form()
    try:
        body = validate_form(SignupForm, form)
    except ValidationFailed as e:
        return render(request, "signup.html", {"error_message": e.message})
    password_hash = await run_in_threadpool(hash_password, body.password)
    try:
        await store.create(body.username, body.email, password_hash)
    except DuplicateError as e:
        return render(request, "signup.html", {"error_message": str(e)})
    logger.info("New signup: %s", body.username)
    return await _start_session(request, body.username, "user")


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, session=Depends(get_session)):
    return render(request, "login.html", {"error_message": None})


@router.post("/login")
async def login(
    request: Request,
    session=Depends(get_session),
    store: CredentialStore = Depends(get_credential_store),
):
    """Verify email and password. Unknown email and wrong password look the same."""
    form = await request.form()
    try:
        body = validate_form(LoginForm, form)
    except ValidationFailed as e:
        return render(request, "login.html", {"error_message": e.message})
    user = await store.find_by_email(body.email)
    if user is None:
        # Spend the same time as a real verify
        await run_in_threadpool(pwd_context.dummy_verify)
        verified = False
    else:
        verified = await run_in_threadpool(verify_password, body.password, user.password_hash)
    if not verified:
        logger.info("Failed login for %s", body.email)
        return render(request, "login.html", {"error_message": INVALID_CREDENTIALS})
    logger.info("Login: %s", user.username)
    return await _start_session(request, user.username, user.role)


@router.get("/members", response_class=HTMLResponse)
async def members(request: Request, session: Authenticated = Depends(require_authenticated("/"))):
    return render(request, "members.html", {"username": session.username, "image": pick_member_image()})


@router.get("/logout")
async def logout(request: Request):
    await get_session_manager(request).destroy(session_token(request))
    response = _redirect("/")
    clear_session_cookie(request, response)
    return response


@router.get("/nosql-injection", response_class=HTMLResponse)
async def nosql_injection(request: Request, store: CredentialStore = Depends(get_credential_store)):
    """Deliberately vulnerable lookup demo.

    The raw ?user= value (which may parse to an operator document, e.g. user[$ne]=x)
    is the lookup key. Only the shape check below stands between it and the query.
    """
    username = parse_nested_query(request.query_params.multi_items()).get("user")
    if not username:
        return HTMLResponse(INJECTION_HELP)
    logger.info("Injection demo lookup: user=%r", username)
    try:
        username = validate_lookup(username)
    except ValidationFailed as e:
        logger.warning("Injection demo rejected lookup: %s", e.message)
        return HTMLResponse(INJECTION_DETECTED)
    matches = await store.find_by_username(username)
    logger.info("Injection demo matched %d user(s): %s", len(matches), [(u.id, u.username) for u in matches])
    return render(request, "hello.html", {"username": username})
