# portal/api/routers/site.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from portal.api.deps import get_auth, get_identity, get_renderer
from portal.api.rendering import PageRenderer
from portal.core.errors import AuthenticationError, PortalError
from portal.schemas.auth import SignInRequest, SignUpRequest
from portal.services.auth_coordinator import (
    RETURN_TO_COOKIE,
    AuthCoordinator,
    Identity,
    safe_return_path,
)

router = APIRouter(tags=["site"])


@router.get("/")
async def index(request: Request, renderer: PageRenderer = Depends(get_renderer)):
    return renderer.render(request, "index", {})


@router.get("/signin")
async def signin_page(
    request: Request,
    renderer: PageRenderer = Depends(get_renderer),
    identity: Identity | None = Depends(get_identity),
):
    """Sign-in page; ``signedIn`` lets the page offer a shortcut to the dashboard."""
    return renderer.render(request, "login", {"errorMessage": None, "signedIn": identity is not None})


@router.post("/signin/password")
async def signin_password(
    body: SignInRequest,
    request: Request,
    response: Response,
    auth: AuthCoordinator = Depends(get_auth),
):
    """
    Password sign-in.

    On success the session cookie is set (plus the signed restore cookies when
    ``remember`` is true) and ``redirectTo`` holds the page that sent the user
    to sign in, or the dashboard.

    Raises:
        HTTPException (400): Email or password missing
        HTTPException (401): Credentials rejected (unknown email and wrong
            password answer the same)
    """
    try:
        identity = await auth.sign_in(body.email, body.password)
    except AuthenticationError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": auth.message_for(err)},
        )
    except PortalError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": err.code, "message": auth.message_for(err)},
        )

    auth.issue_session(response, identity, remember=body.remember)
    redirect_to = safe_return_path(request.cookies.get(RETURN_TO_COOKIE))
    response.delete_cookie(RETURN_TO_COOKIE, path="/")
    return {"success": True, "data": {"email": identity.email, "redirectTo": redirect_to}}


@router.get("/signup")
async def signup_page(request: Request, renderer: PageRenderer = Depends(get_renderer)):
    return renderer.render(request, "register", {"errorMessage": None})


@router.post("/signup/password")
async def signup_password(body: SignUpRequest, auth: AuthCoordinator = Depends(get_auth)):
    """
    Password sign-up. The account starts unverified.

    Error codes:
        - EMAIL_REQUIRED / EMAIL_INVALID / PASSWORD_REQUIRED
        - PASSWORD_WEAK: message lists every violated rule, one per line
        - EMAIL_EXISTS
    """
    try:
        await auth.sign_up(body.email, body.password, body.passwordConfirm)
    except PortalError as err:
        return {"success": False, "error": {"code": err.code, "message": auth.message_for(err)}}
    return {"success": True, "data": {"email": body.email.strip(), "redirectTo": "/signin"}}


@router.api_route("/signout", methods=["GET", "POST"])
async def signout(response: Response, auth: AuthCoordinator = Depends(get_auth)):
    """Clear the session, the restore cookies and any pending post-login redirect."""
    auth.sign_out(response)
    return {"success": True}
