"""Account store — persistence for account records.

Learn: The store is the only shared mutable state in the system. Every
method is one atomic call: lookups return None for "no such account"
(distinct from failures), and database failures surface as
InfrastructureError so callers never see SQLAlchemy types.

Credential fields (password_hash, refresh_token) have dedicated setters used
only by SessionService; the generic update_fields refuses them.
"""

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.db.models import Account, utcnow
from vidtube.errors import ConflictError, InfrastructureError

logger = structlog.get_logger()

CREDENTIAL_FIELDS = frozenset({"password_hash", "refresh_token"})
PROFILE_FIELDS = frozenset({"full_name", "email", "avatar", "cover_image"})


class AccountStore:
    """Async SQLAlchemy implementation of the account store."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ──────────────────────────────────────────

    async def find_by_username_or_email(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[Account]:
        """Match on either identifier (both compared in lowercase)."""
        clauses = []
        if username:
            clauses.append(Account.username == username.strip().lower())
        if email:
            clauses.append(Account.email == email.strip().lower())
        if not clauses:
            return None
        q = select(Account).where(or_(*clauses)).limit(1)
        result = await self._execute(q)
        return result.scalars().first()

    async def find_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        result = await self._execute(select(Account).where(Account.id == account_id))
        return result.scalars().first()

    async def find_by_username(self, username: str) -> Optional[Account]:
        q = select(Account).where(Account.username == username.strip().lower())
        result = await self._execute(q)
        return result.scalars().first()

    async def email_taken_by_other(self, email: str, account_id: uuid.UUID) -> bool:
        q = select(Account.id).where(
            Account.email == email.strip().lower(), Account.id != account_id
        )
        result = await self._execute(q)
        return result.first() is not None

    # ─── Writes ─────────────────────────────────────────

    async def create(
        self,
        *,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> Account:
        account = Account(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar=avatar,
            cover_image=cover_image,
        )
        self.db.add(account)
        try:
            await self.db.commit()
            await self.db.refresh(account)
        except IntegrityError as e:
            await self.db.rollback()
            logger.info("store.create_conflict", username=username)
            raise ConflictError("User with email or username already exists") from e
        except SQLAlchemyError as e:
            await self._fail("create", e)
        return account

    async def update_fields(self, account_id: uuid.UUID, patch: dict[str, Any]) -> Optional[Account]:
        """Apply a profile patch. Returns the updated account or None."""
        forbidden = set(patch) & CREDENTIAL_FIELDS
        if forbidden:
            raise ValueError(f"Credential fields cannot be patched: {sorted(forbidden)}")
        unknown = set(patch) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)}")
        return await self._update(account_id, patch)

    async def set_password_hash(self, account_id: uuid.UUID, password_hash: str) -> bool:
        return await self._update(account_id, {"password_hash": password_hash}) is not None

    async def set_refresh_token(self, account_id: uuid.UUID, token: Optional[str]) -> bool:
        """Overwrite (or clear, with None) the live refresh token."""
        return await self._update(account_id, {"refresh_token": token}) is not None

    async def swap_refresh_token(
        self, account_id: uuid.UUID, expected: str, new: str
    ) -> bool:
        """Compare-and-set the refresh token in one UPDATE.

        Returns False when the stored token no longer equals ``expected``
        (already rotated, revoked, or the account is gone).
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.refresh_token == expected)
            .values(refresh_token=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("swap_refresh_token", e)
        return result.rowcount == 1

    # ─── Internals ──────────────────────────────────────

    async def _update(self, account_id: uuid.UUID, values: dict[str, Any]) -> Optional[Account]:
        try:
            account = await self.db.get(Account, account_id, populate_existing=True)
            if account is None:
                return None
            for key, value in values.items():
                setattr(account, key, value)
            await self.db.commit()
            await self.db.refresh(account)
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("User with email or username already exists") from e
        except SQLAlchemyError as e:
            await self._fail("update", e)
        return account

    async def _execute(self, statement):
        # Rows may have been changed by a bulk UPDATE in this session
        statement = statement.execution_options(populate_existing=True)
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            await self._fail("query", e)

    async def _fail(self, operation: str, exc: Exception):
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            logger.warning("store.rollback_failed", operation=operation)
        # Never str(exc): SQLAlchemy errors embed the bound parameters, tokens included
        logger.error("store.unavailable", operation=operation, error_type=type(exc).__name__)
        raise InfrastructureError("Account store is unavailable") from exc
