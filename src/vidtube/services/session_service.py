"""Session service — registration, login, token rotation, logout, passwords.

Learn: This is the only code that writes an account's password_hash or
refresh_token. The refresh token column is a tiny state machine:

    ABSENT --login--> ISSUED --refresh--> ISSUED (new value) --logout--> ABSENT

Login overwrites any previous token, which revokes the older session: one
live session per account. Refresh is rotate-on-use: the presented token must
equal the stored one, and the new token replaces it through a
compare-and-set, so a rotated-out token can never be used twice.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from vidtube.auth.jwt import TokenError, TokenService, subject_id
from vidtube.auth.password import hash_password_async, verify_password_async
from vidtube.db.models import ACCOUNT_FIELD_LIMITS, Account
from vidtube.errors import (
    AuthError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from vidtube.schemas.account import AccountPublic
from vidtube.services.account_store import AccountStore
from vidtube.services.media import MediaUploader

logger = structlog.get_logger()


class RefreshTokenState(str, enum.Enum):
    ABSENT = "absent"
    ISSUED = "issued"


def refresh_token_state(account: Account) -> RefreshTokenState:
    return RefreshTokenState.ISSUED if account.refresh_token else RefreshTokenState.ABSENT


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    account: AccountPublic
    access_token: str
    refresh_token: str


def sanitize(account: Account) -> AccountPublic:
    """Strip credential fields before an account leaves the service layer."""
    return AccountPublic.model_validate(account)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def check_field_lengths(**values: str) -> None:
    """Reject account fields wider than their columns."""
    for field, value in values.items():
        limit = ACCOUNT_FIELD_LIMITS[field]
        if len(value) > limit:
            raise ValidationError(f"{field} must be at most {limit} characters")


class SessionService:
    """Business logic for the account/session lifecycle."""

    def __init__(
        self,
        store: AccountStore,
        tokens: TokenService,
        media: Optional[MediaUploader] = None,
    ):
        self.store = store
        self.tokens = tokens
        self.media = media

    # ─── Register ───────────────────────────────────────

    async def register(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar_path: Optional[str],
        cover_image_path: Optional[str] = None,
    ) -> AccountPublic:
        """Create an account after uploading its avatar (and optional cover).

        Order matters: input checks and the duplicate check run before any
        upload, so a rejected registration never touches the media host.
        """
        if any(_blank(v) for v in (full_name, email, username, password)):
            raise ValidationError("All fields are required")

        username = username.strip().lower()
        email = email.strip().lower()
        full_name = full_name.strip()
        check_field_lengths(username=username, email=email, full_name=full_name)

        existing = await self.store.find_by_username_or_email(username=username, email=email)
        if existing:
            raise ConflictError("User with email or username already exists")

        if not avatar_path:
            raise ValidationError("Avatar file is required")
        if self.media is None:
            raise InfrastructureError("Media uploads are not configured")

        avatar = await self.media.upload(avatar_path)
        if avatar is None:
            raise ValidationError("Avatar file is required")

        cover = await self.media.upload(cover_image_path) if cover_image_path else None

        try:
            account = await self.store.create(
                username=username,
                email=email,
                full_name=full_name,
                password_hash=await hash_password_async(password),
                avatar=avatar.url,
                cover_image=cover.url if cover else "",
            )
        except ConflictError:
            # Lost a duplicate race after uploading; the media host keeps the files
            logger.warning(
                "media.orphaned",
                username=username,
                public_ids=[a.public_id for a in (avatar, cover) if a],
            )
            raise
        logger.info("auth.registered", account_id=str(account.id), username=username)
        return sanitize(account)

    # ─── Login ──────────────────────────────────────────

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LoginResult:
        """Verify credentials, then issue and persist a fresh token pair."""
        if _blank(username) and _blank(email):
            raise ValidationError("username or email is required")

        account = await self.store.find_by_username_or_email(username=username, email=email)
        if account is None:
            raise NotFoundError("User does not exist")

        if not await verify_password_async(password or "", account.password_hash):
            logger.info("auth.login_rejected", account_id=str(account.id))
            raise AuthError("invalid_credentials")

        pair = await self._issue_pair(account)
        logger.info("auth.login_succeeded", account_id=str(account.id))
        return LoginResult(
            account=sanitize(account),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def _issue_pair(self, account: Account) -> TokenPair:
        access = self.tokens.issue_access_token(account)
        refresh = self.tokens.issue_refresh_token(account)
        if not await self.store.set_refresh_token(account.id, refresh.token):
            raise AuthError("account_missing")
        return TokenPair(access.token, refresh.token)

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, presented: Optional[str]) -> TokenPair:
        """Exchange a live refresh token for a new pair (rotate-on-use)."""
        if not presented:
            raise AuthError("missing_token")

        try:
            claims = self.tokens.verify_refresh(presented)
            account_id = subject_id(claims)
        except TokenError as e:
            logger.info("auth.refresh_rejected", reason=e.reason.value)
            raise AuthError(e.reason.value)

        account = await self.store.find_by_id(account_id)
        if account is None:
            logger.info("auth.refresh_rejected", reason="account_missing")
            raise AuthError("account_missing")

        if presented != account.refresh_token:
            logger.warning(
                "auth.refresh_reused",
                account_id=str(account.id),
                state=refresh_token_state(account).value,
            )
            raise AuthError("token_reused")

        access = self.tokens.issue_access_token(account)
        refresh = self.tokens.issue_refresh_token(account)
        if not await self.store.swap_refresh_token(account.id, presented, refresh.token):
            # Lost a race with another rotation or a logout
            logger.warning("auth.refresh_raced", account_id=str(account.id))
            raise AuthError("token_reused")

        logger.info("auth.refreshed", account_id=str(account.id))
        return TokenPair(access.token, refresh.token)

    # ─── Logout ─────────────────────────────────────────

    async def logout(self, account_id: uuid.UUID) -> None:
        """Clear the live refresh token; later refreshes fail immediately."""
        await self.store.set_refresh_token(account_id, None)
        logger.info("auth.logged_out", account_id=str(account_id))

    # ─── Password ───────────────────────────────────────

    async def change_password(
        self, account_id: uuid.UUID, old_password: str, new_password: str
    ) -> None:
        account = await self.store.find_by_id(account_id)
        if account is None:
            raise AuthError("account_missing")

        if not await verify_password_async(old_password or "", account.password_hash):
            logger.info("auth.password_change_rejected", account_id=str(account_id))
            raise AuthError("invalid_old_password")

        if _blank(new_password):
            raise ValidationError("New password is required")

        await self.store.set_password_hash(account_id, await hash_password_async(new_password))
        logger.info("auth.password_changed", account_id=str(account_id))
