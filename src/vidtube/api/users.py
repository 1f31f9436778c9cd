"""Users API — registration, sessions, profile, channels, watch history.

Learn: Routes are thin. They parse the request, hand plain values to
SessionService / ProfileService, and wrap results in the ApiResponse
envelope. Errors are not translated here; DomainErrors propagate to the
handlers in api.errors.

- POST  /users/register        → multipart form + avatar/cover_image files
- POST  /users/login           → tokens in body and httpOnly cookies
- POST  /users/refresh-token   → rotate the refresh token (cookie or body)
- POST  /users/logout          → revoke refresh token, clear cookies
- POST  /users/change-password
- GET   /users/current-user
- PATCH /users/update-account
- PATCH /users/avatar
- PATCH /users/cover-image
- GET   /users/c/{username}    → channel profile
- GET   /users/history         → watch history
"""

import asyncio
import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, Cookie, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.dependencies import ACCESS_COOKIE, REFRESH_COOKIE, get_current_account
from vidtube.auth.jwt import TokenService, get_token_service
from vidtube.config import settings
from vidtube.db.engine import get_db
from vidtube.schemas.account import (
    AccountPublic,
    ApiResponse,
    ChangePasswordRequest,
    ChannelProfile,
    LoginRead,
    LoginRequest,
    RefreshRequest,
    TokenPairRead,
    UpdateAccountRequest,
    WatchedVideo,
)
from vidtube.services.account_store import AccountStore
from vidtube.services.media import MediaUploader, discard_local, get_media_uploader
from vidtube.services.profile_service import ProfileService
from vidtube.services.session_service import SessionService

router = APIRouter(prefix="/users")


# ─── Dependencies ───────────────────────────────────────


def get_session_service(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    media: MediaUploader = Depends(get_media_uploader),
) -> SessionService:
    return SessionService(AccountStore(db), tokens, media)


def get_profile_service(
    db: AsyncSession = Depends(get_db),
    media: MediaUploader = Depends(get_media_uploader),
) -> ProfileService:
    return ProfileService(db, media=media)


# ─── Helpers ────────────────────────────────────────────


def _spool(source, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with dest.open("wb") as out:
        shutil.copyfileobj(source, out)


async def save_upload(upload: Optional[UploadFile]) -> Optional[str]:
    """Spool a multipart file into the temp dir; None if nothing was sent.

    The copy is blocking disk I/O, so it runs in a worker thread.
    """
    if upload is None or not upload.filename:
        return None
    dest = Path(settings.upload_tmp_dir) / f"{uuid.uuid4().hex}{Path(upload.filename).suffix}"
    await upload.seek(0)
    await asyncio.to_thread(_spool, upload.file, dest)
    return str(dest)


def set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(
        ACCESS_COOKIE, access_token,
        max_age=settings.access_token_expire_minutes * 60, **options,
    )
    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        max_age=settings.refresh_token_expire_days * 86400, **options,
    )


def clear_session_cookies(response: Response) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)


# ─── Register ───────────────────────────────────────────


@router.post("/register", response_model=ApiResponse[AccountPublic], status_code=201)
async def register(
    username: str = Form(""),
    email: str = Form(""),
    full_name: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    sessions: SessionService = Depends(get_session_service),
):
    """Create an account. The avatar file is required, the cover image is not."""
    avatar_path = await save_upload(avatar)
    cover_path = await save_upload(cover_image)
    try:
        account = await sessions.register(
            username=username,
            email=email,
            full_name=full_name,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_path,
        )
    finally:
        # Rejected registrations never reach the uploader, which would clean up
        discard_local(avatar_path)
        discard_local(cover_path)
    return ApiResponse(status_code=201, data=account, message="User registered successfully")


# ─── Sessions ───────────────────────────────────────────


@router.post("/login", response_model=ApiResponse[LoginRead])
async def login(
    body: LoginRequest,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
):
    """Username or email plus password → access/refresh tokens."""
    result = await sessions.login(
        password=body.password, username=body.username, email=body.email
    )
    set_session_cookies(response, result.access_token, result.refresh_token)
    return ApiResponse(
        data=LoginRead(
            user=result.account,
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        ),
        message="User logged in successfully",
    )


@router.post("/refresh-token", response_model=ApiResponse[TokenPairRead])
async def refresh_token(
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
    cookie_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    sessions: SessionService = Depends(get_session_service),
):
    """Rotate the refresh token. Cookie first; body for clients without cookies."""
    presented = cookie_token or (body.refresh_token if body else None)
    pair = await sessions.refresh(presented)
    set_session_cookies(response, pair.access_token, pair.refresh_token)
    return ApiResponse(
        data=TokenPairRead(access_token=pair.access_token, refresh_token=pair.refresh_token),
        message="Access token refreshed",
    )


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    current: AccountPublic = Depends(get_current_account),
    sessions: SessionService = Depends(get_session_service),
):
    await sessions.logout(current.id)
    clear_session_cookies(response)
    return ApiResponse(data={}, message="User logged out successfully")


@router.post("/change-password", response_model=ApiResponse[dict])
async def change_password(
    body: ChangePasswordRequest,
    current: AccountPublic = Depends(get_current_account),
    sessions: SessionService = Depends(get_session_service),
):
    await sessions.change_password(current.id, body.old_password, body.new_password)
    return ApiResponse(data={}, message="Password changed successfully")


# ─── Profile ────────────────────────────────────────────


@router.get("/current-user", response_model=ApiResponse[AccountPublic])
async def current_user(current: AccountPublic = Depends(get_current_account)):
    return ApiResponse(data=current, message="Current user fetched successfully")


@router.patch("/update-account", response_model=ApiResponse[AccountPublic])
async def update_account(
    body: UpdateAccountRequest,
    current: AccountPublic = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
):
    account = await profiles.update_account(current.id, body.full_name, body.email)
    return ApiResponse(data=account, message="Account details updated successfully")


@router.patch("/avatar", response_model=ApiResponse[AccountPublic])
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current: AccountPublic = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
):
    path = await save_upload(avatar)
    try:
        account = await profiles.update_avatar(current.id, path)
    finally:
        discard_local(path)
    return ApiResponse(data=account, message="Avatar updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[AccountPublic])
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current: AccountPublic = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
):
    path = await save_upload(cover_image)
    try:
        account = await profiles.update_cover_image(current.id, path)
    finally:
        discard_local(path)
    return ApiResponse(data=account, message="Cover image updated successfully")


# ─── Channels & history ─────────────────────────────────


@router.get("/c/{username}", response_model=ApiResponse[ChannelProfile])
async def channel_profile(
    username: str,
    current: AccountPublic = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
):
    channel = await profiles.get_channel_profile(username, current.id)
    return ApiResponse(data=channel, message="User channel fetched successfully")


@router.get("/history", response_model=ApiResponse[list[WatchedVideo]])
async def watch_history(
    current: AccountPublic = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
):
    videos = await profiles.get_watch_history(current.id)
    return ApiResponse(data=videos, message="Watch history fetched successfully")
