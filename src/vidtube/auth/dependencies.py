"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the current account from the request.

The access token is read from the ``accessToken`` cookie set at login, or
from an ``Authorization: Bearer`` header for clients without cookie
support (mobile, CLI). Every failure is the same AuthError, so callers
cannot tell which check rejected them.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.jwt import TokenError, TokenService, get_token_service, subject_id
from vidtube.db.engine import get_db
from vidtube.errors import AuthError
from vidtube.schemas.account import AccountPublic
from vidtube.services.account_store import AccountStore
from vidtube.services.session_service import sanitize

logger = structlog.get_logger()

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def extract_access_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Cookie first, then Bearer header."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_account(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AccountPublic:
    """Resolve the caller's account (AuthError if anything fails).

    The sanitized account is also attached to request.state.account for
    downstream code that only has the request.
    """
    token = extract_access_token(request, authorization)
    if not token:
        raise AuthError("missing_token")

    try:
        claims = tokens.verify_access(token)
        account_id = subject_id(claims)
    except TokenError as e:
        logger.info("auth.gate_rejected", reason=e.reason.value)
        raise AuthError(e.reason.value)

    account = await AccountStore(db).find_by_id(account_id)
    if account is None:
        logger.info("auth.gate_rejected", reason="account_missing")
        raise AuthError("account_missing")

    current = sanitize(account)
    request.state.account = current
    return current
