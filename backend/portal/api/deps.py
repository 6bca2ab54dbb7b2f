# portal/api/deps.py
"""
Request dependencies and the three access guards.

- Page guard: unauthenticated -> remember the requested path, redirect to /signin
- API guard: unauthenticated -> 401 with an empty body
- Verified-only guard: API guard + account.verified, otherwise 403 with an empty body
"""
from fastapi import Depends, FastAPI, Request
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from portal.api.rendering import PageRenderer
from portal.config import settings
from portal.services.auth_coordinator import RETURN_TO_COOKIE, AuthCoordinator, Identity

RETURN_TO_MAX_AGE = 10 * 60  # seconds


class SignInRequired(Exception):
    """Raised by the page guard; turned into a redirect to /signin."""

    def __init__(self, next_path: str):
        super().__init__(next_path)
        self.next_path = next_path


class GuardRejected(Exception):
    """Raised by the API guards; turned into an empty response with ``status_code``."""

    def __init__(self, status_code: int):
        super().__init__(status_code)
        self.status_code = status_code


def get_auth(request: Request) -> AuthCoordinator:
    return request.app.state.auth


def get_renderer(request: Request) -> PageRenderer:
    return request.app.state.renderer


def get_identity(request: Request) -> Identity | None:
    """Identity resolved by the session middleware (None when signed out)."""
    return getattr(request.state, "identity", None)


async def require_page_user(request: Request, identity: Identity | None = Depends(get_identity)) -> Identity:
    if identity is None:
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        raise SignInRequired(path)
    return identity


async def require_api_user(identity: Identity | None = Depends(get_identity)) -> Identity:
    if identity is None:
        raise GuardRejected(401)
    return identity


async def require_verified_user(
    identity: Identity = Depends(require_api_user),
    auth: AuthCoordinator = Depends(get_auth),
) -> Identity:
    account = await auth.load_account(identity)
    if account is None or not account.verified:
        raise GuardRejected(403)
    return identity


async def _sign_in_required_handler(request: Request, exc: SignInRequired):
    response = RedirectResponse("/signin", status_code=303)
    response.set_cookie(
        RETURN_TO_COOKIE,
        exc.next_path,
        max_age=RETURN_TO_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return response


async def _guard_rejected_handler(request: Request, exc: GuardRejected):
    return Response(status_code=exc.status_code)


def install_guard_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SignInRequired, _sign_in_required_handler)
    app.add_exception_handler(GuardRejected, _guard_rejected_handler)
