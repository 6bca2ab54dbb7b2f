# portal/api/routers/user.py
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from portal.api.deps import (
    get_auth,
    get_identity,
    get_renderer,
    require_api_user,
    require_page_user,
    require_verified_user,
)
from portal.api.rendering import PageRenderer
from portal.core.errors import PortalError
from portal.schemas.account import AccountOut, ResetPasswordIn, ResetPasswordOut, UserStatistics
from portal.schemas.auth import NicknameIn
from portal.services.auth_coordinator import AuthCoordinator, Identity


router = APIRouter(prefix="/user", tags=["user"])


@router.get("/dashboard")
async def dashboard(
    request: Request,
    identity: Identity = Depends(require_page_user),
    auth: AuthCoordinator = Depends(get_auth),
    renderer: PageRenderer = Depends(get_renderer),
):
    account = await auth.load_account(identity)
    params = {
        "id": account.id if account else None,
        "isVerified": bool(account and account.verified),
    }
    return renderer.render(request, "dashboard", params)


@router.get("/profile")
async def profile(
    request: Request,
    identity: Identity = Depends(require_page_user),
    auth: AuthCoordinator = Depends(get_auth),
    renderer: PageRenderer = Depends(get_renderer),
):
    account = await auth.load_account(identity)
    params = {"nickname": account.nickname if account else None, "email": identity.email}
    return renderer.render(request, "profile", params)


@router.post("/profile")
async def change_nickname(
    body: NicknameIn,
    identity: Identity = Depends(require_api_user),
    auth: AuthCoordinator = Depends(get_auth),
):
    """Change the signed-in user's nickname; an empty nickname changes nothing."""
    updated = await auth.store.change_nickname(identity.email, body.nickname.strip())
    return {"success": True, "data": {"updated": updated}}


@router.get("/list", response_model=List[AccountOut], dependencies=[Depends(require_verified_user)])
async def user_list(auth: AuthCoordinator = Depends(get_auth)):
    """All accounts ordered by id; password hashes and tokens never leave the store."""
    return await auth.store.get_user_list()


@router.get("/statistics", response_model=UserStatistics, dependencies=[Depends(require_verified_user)])
async def user_statistics(auth: AuthCoordinator = Depends(get_auth)):
    return await auth.store.get_user_statistics()


@router.post("/reset-password", response_model=ResetPasswordOut, response_model_exclude_none=True)
async def reset_password(
    body: ResetPasswordIn,
    identity: Identity | None = Depends(get_identity),
    auth: AuthCoordinator = Depends(get_auth),
):
    """
    Change the password of the signed-in account.

    Returns:
        ResetPasswordOut: ``isValid`` with either ``information`` (success) or
        ``message`` (failure). 401 when not signed in or userId is missing.
    """
    not_signed_in = {"isValid": False, "message": auth.message("NOT_SIGNED_IN")}
    if identity is None:
        return JSONResponse(not_signed_in, status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        user_id = int(body.userId)
    except (TypeError, ValueError):
        return JSONResponse(not_signed_in, status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        await auth.change_password(identity, user_id, body.oldPassword, body.password)
    except PortalError as err:
        return ResetPasswordOut(isValid=False, message=auth.message_for(err))
    return ResetPasswordOut(isValid=True, information=auth.message("PASSWORD_UPDATED"))


@router.post("/verify")
async def request_verification(
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_api_user),
    auth: AuthCoordinator = Depends(get_auth),
):
    """
    Issue a new verification token and email the link.

    The mail goes out after the response; a transport failure is logged by
    the sender and does not undo the token.
    """
    token = await auth.request_verification(identity)
    if not token:
        return {"success": False, "error": {"code": "VERIFICATION_NOT_SENT",
                                            "message": auth.message("VERIFICATION_NOT_SENT")}}
    background_tasks.add_task(auth.email_sender.send_verification_email, identity.email, token)
    return {"success": True, "data": {"sent": True}}


@router.get("/verify/{email}/{token}")
async def verify_email(
    email: str,
    token: str,
    request: Request,
    auth: AuthCoordinator = Depends(get_auth),
    renderer: PageRenderer = Depends(get_renderer),
):
    # Path parameters arrive percent-decoded, so "a%40b.com" is matched as "a@b.com"
    verified = await auth.verify_email(email, token)
    return renderer.render(request, "verify", {"email": email, "isVerified": verified})
