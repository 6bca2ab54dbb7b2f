# portal/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from portal.config import settings
from portal.core.db import init_db, close_db
from portal.api.deps import install_guard_handlers
from portal.api.rendering import JsonPageRenderer
from portal.api.routers import site, user
from portal.services.account_store import AccountStore
from portal.services.auth_coordinator import SESSION_COOKIE, AuthCoordinator
from portal.services.email_sender import create_email_sender
from portal.services.password_checker import PasswordChecker

logger = logging.getLogger("uvicorn.error")

# Routes that establish or end a session never restore one from cookies
NO_RESTORE_PATHS = frozenset({"/signin/password", "/signout"})


def _writes_cookie(response, name: str) -> bool:
    prefix = f"{name}=".encode("latin-1")
    return any(
        key == b"set-cookie" and value.startswith(prefix)
        for key, value in response.raw_headers
    )


def create_app(store: AccountStore | None = None, email_sender=None, renderer=None) -> FastAPI:
    """
    Build the application.

    Collaborators are injected so tests can pass an in-memory store or a
    recording email sender; defaults come from settings.
    """
    app = FastAPI(title=settings.APP_NAME)

    # CORS (with Cookie)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = store or AccountStore(stats_timezone=settings.stats_timezone)
    checker = PasswordChecker(minimum_length=settings.password_min_length, explain_failures=True)
    app.state.auth = AuthCoordinator(store, checker, email_sender or create_email_sender())
    app.state.renderer = renderer or JsonPageRenderer()

    @app.middleware("http")
    async def _session_middleware(request: Request, call_next):
        # Fresh session cookie first, signed restore cookies second
        auth: AuthCoordinator = request.app.state.auth
        allow_restore = request.url.path not in NO_RESTORE_PATHS
        identity, restored_now = await auth.resolve(request.cookies, allow_restore=allow_restore)
        request.state.identity = identity
        response = await call_next(request)
        # A route that wrote or cleared the session cookie itself wins
        if restored_now and not _writes_cookie(response, SESSION_COOKIE):
            auth.issue_session(response, identity)
        return response

    install_guard_handlers(app)

    @app.on_event("startup")
    async def on_startup():
        settings.check_secrets()
        await init_db(generate_schemas=(settings.env == "dev"))
        logger.info("[startup] %s ready (env=%s)", settings.APP_NAME, settings.env)

    @app.on_event("shutdown")
    async def on_shutdown():
        await close_db()

    app.include_router(site.router)
    app.include_router(user.router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    return app


app = create_app()
