"""Profile service — current account, profile edits, channels, watch history.

Learn: Channel profiles need three numbers (subscribers, subscriptions,
whether the viewer subscribes). Those are plain COUNT / EXISTS subqueries
evaluated in one SELECT, not an aggregation pipeline.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vidtube.db.models import Account, Subscription, Video, WatchHistoryEntry
from vidtube.errors import (
    AuthError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from vidtube.schemas.account import AccountPublic, ChannelProfile, WatchedVideo
from vidtube.services.account_store import AccountStore
from vidtube.services.media import MediaUploader
from vidtube.services.session_service import check_field_lengths, sanitize

logger = structlog.get_logger()


class ProfileService:
    """Read and edit the non-credential side of an account."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[AccountStore] = None,
        media: Optional[MediaUploader] = None,
    ):
        self.db = db
        self.store = store or AccountStore(db)
        self.media = media

    async def get_current(self, account_id: uuid.UUID) -> AccountPublic:
        account = await self.store.find_by_id(account_id)
        if account is None:
            raise AuthError("account_missing")
        return sanitize(account)

    # ─── Edits ──────────────────────────────────────────

    async def update_account(
        self, account_id: uuid.UUID, full_name: str, email: str
    ) -> AccountPublic:
        if not (full_name or "").strip() or not (email or "").strip():
            raise ValidationError("All fields are required")
        email = email.strip().lower()
        full_name = full_name.strip()
        check_field_lengths(full_name=full_name, email=email)

        if await self.store.email_taken_by_other(email, account_id):
            raise ConflictError("Email is already in use")

        account = await self.store.update_fields(
            account_id, {"full_name": full_name, "email": email}
        )
        if account is None:
            raise AuthError("account_missing")
        logger.info("profile.updated", account_id=str(account_id))
        return sanitize(account)

    async def update_avatar(self, account_id: uuid.UUID, avatar_path: Optional[str]) -> AccountPublic:
        return await self._replace_image(account_id, "avatar", avatar_path, "Avatar file")

    async def update_cover_image(
        self, account_id: uuid.UUID, cover_path: Optional[str]
    ) -> AccountPublic:
        return await self._replace_image(account_id, "cover_image", cover_path, "Cover image file")

    async def _replace_image(
        self, account_id: uuid.UUID, field: str, path: Optional[str], label: str
    ) -> AccountPublic:
        if not path:
            raise ValidationError(f"{label} is missing")
        asset = await self.media.upload(path) if self.media else None
        if asset is None:
            raise ValidationError(f"Error while uploading {label.lower()}")

        account = await self.store.update_fields(account_id, {field: asset.url})
        if account is None:
            raise AuthError("account_missing")
        logger.info("profile.image_replaced", account_id=str(account_id), field=field)
        return sanitize(account)

    # ─── Channels ───────────────────────────────────────

    async def get_channel_profile(
        self, username: Optional[str], viewer_id: uuid.UUID
    ) -> ChannelProfile:
        if not username or not username.strip():
            raise ValidationError("username is missing")

        subscribers = (
            select(func.count(Subscription.id))
            .where(Subscription.channel_id == Account.id)
            .scalar_subquery()
        )
        subscribed_to = (
            select(func.count(Subscription.id))
            .where(Subscription.subscriber_id == Account.id)
            .scalar_subquery()
        )
        is_subscribed = exists().where(
            Subscription.channel_id == Account.id,
            Subscription.subscriber_id == viewer_id,
        )

        q = select(
            Account,
            subscribers.label("subscribers_count"),
            subscribed_to.label("channels_subscribed_to_count"),
            is_subscribed.label("is_subscribed"),
        ).where(Account.username == username.strip().lower())

        row = (await self._execute(q)).first()
        if row is None:
            raise NotFoundError("Channel does not exist")

        channel = row[0]
        return ChannelProfile(
            id=channel.id,
            username=channel.username,
            email=channel.email,
            full_name=channel.full_name,
            avatar=channel.avatar,
            cover_image=channel.cover_image,
            subscribers_count=row.subscribers_count or 0,
            channels_subscribed_to_count=row.channels_subscribed_to_count or 0,
            is_subscribed=bool(row.is_subscribed),
        )

    # ─── Watch history ──────────────────────────────────

    async def get_watch_history(self, account_id: uuid.UUID) -> list[WatchedVideo]:
        q = (
            select(Video)
            .join(WatchHistoryEntry, WatchHistoryEntry.video_id == Video.id)
            .where(WatchHistoryEntry.account_id == account_id)
            .options(selectinload(Video.owner))
            .order_by(WatchHistoryEntry.watched_at, WatchHistoryEntry.id)
        )
        result = await self._execute(q)
        return [WatchedVideo.model_validate(v) for v in result.scalars().all()]

    async def _execute(self, statement):
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("profile.query_failed", error_type=type(e).__name__)
            raise InfrastructureError("Account store is unavailable") from e
