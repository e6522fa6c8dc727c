import logging
from urllib.parse import urlsplit

from authlib.integrations.starlette_client import OAuth
from starlette.config import Config
from starlette.requests import HTTPConnection
from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.responses import RedirectResponse

from app.search.tiering import REDIRECT_SESSION_KEY, AuthSignal, login_redirect, safe_return_target

logger = logging.getLogger(__name__)

config = Config(".env")
oauth = OAuth(config)

AUTH_ENABLED = config("AUTH_ENABLED", cast=bool, default=True)

#: Identity every visitor gets when authentication is switched off.
LOCAL_USER = {"preferred_username": "anonymous", "name": "Local user"}

if AUTH_ENABLED:
    oauth.register(
        name="authentik",
        client_id=config("AUTHENTIK_CLIENT_ID"),
        client_secret=config("AUTHENTIK_CLIENT_SECRET"),
        server_metadata_url=config("AUTHENTIK_CONFIG_URL"),
        client_kwargs={"scope": "openid profile email"},
    )

router = APIRouter()


def get_current_user(conn: HTTPConnection):
    if not AUTH_ENABLED:
        return LOCAL_USER
    return conn.session.get("user")


def get_auth_signal(conn: HTTPConnection) -> AuthSignal:
    """Authentication state as the search core sees it (works for HTTP and WebSocket)."""
    return AuthSignal(user=get_current_user(conn), is_loading=False)


def return_target(request: Request) -> str:
    """Page a guest should come back to after login.

    An explicit ``X-Return-To`` header wins; otherwise the path and query of
    the ``Referer`` (the search page the request came from) is used.
    """
    explicit = request.headers.get("x-return-to")
    if explicit:
        return safe_return_target(explicit)
    referer = request.headers.get("referer")
    if referer:
        parts = urlsplit(referer)
        path = f"{parts.path}?{parts.query}" if parts.query else parts.path
        return safe_return_target(path)
    return safe_return_target(None)


def require_member(request: Request, signal: AuthSignal = Depends(get_auth_signal)) -> AuthSignal:
    """Dependency for member-only JSON endpoints; guests get 401 with the login URL."""
    if signal.is_guest:
        return_to = return_target(request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Sign in to continue", "login_url": login_redirect(return_to, request.session)},
        )
    return signal


if AUTH_ENABLED:
    @router.get("/login")
    async def login(request: Request, redirect: str | None = None):
        if redirect:
            request.session[REDIRECT_SESSION_KEY] = safe_return_target(redirect)
        redirect_uri = request.url_for("auth")
        return await oauth.authentik.authorize_redirect(request, redirect_uri)

    @router.get("/auth")
    async def auth(request: Request):
        token = await oauth.authentik.authorize_access_token(request)
        userinfo = token.get("userinfo")
        request.session["user"] = dict(userinfo)
        redirect_url = safe_return_target(request.session.pop(REDIRECT_SESSION_KEY, None))
        logger.info(f"User signed in, returning to {redirect_url}")
        return RedirectResponse(url=redirect_url)

    @router.get("/logout")
    async def logout(request: Request):
        request.session.pop("user", None)
        return RedirectResponse(url="/search")
