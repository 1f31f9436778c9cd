"""Pydantic schemas for accounts, channels and watch history.

Learn: Pydantic v2 models validate request/response data. "Read" schemas are
built from ORM rows with from_attributes=True and simply have no
password_hash / refresh_token fields, so those never leave the service layer.
"""

import uuid
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


# ─── Envelope ───────────────────────────────────────────

class ApiResponse(BaseModel, Generic[T]):
    """Uniform success envelope: {status_code, data, message, success}."""

    status_code: int = 200
    data: T
    message: str = "Success"
    success: bool = True


class ErrorResponse(BaseModel):
    status_code: int
    error: str
    message: str
    success: bool = False


# ─── Accounts ───────────────────────────────────────────

class AccountPublic(BaseModel):
    """An account as seen by clients (no credential fields)."""

    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = ""


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UpdateAccountRequest(BaseModel):
    full_name: str = ""
    email: str = ""


class TokenPairRead(BaseModel):
    access_token: str
    refresh_token: str


class LoginRead(TokenPairRead):
    user: AccountPublic


# ─── Channels ───────────────────────────────────────────

class ChannelProfile(BaseModel):
    """Public view of an account's channel with subscription counts."""

    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False


# ─── Watch history ──────────────────────────────────────

class VideoOwner(BaseModel):
    username: str
    full_name: str
    avatar: str

    model_config = {"from_attributes": True}


class WatchedVideo(BaseModel):
    id: uuid.UUID
    title: str
    description: str = ""
    video_file: str
    thumbnail: str
    duration: float = 0.0
    views: int = 0
    owner: VideoOwner
    created_at: datetime

    model_config = {"from_attributes": True}
