"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (60min), carries id, email, username, full name
- Refresh token: long-lived (10 days), carries only the account id plus a
  random jti so two tokens minted in the same second still differ

Each kind has its own secret, so an access token never verifies as a refresh
token (and vice versa). Refresh tokens are additionally mirrored on the
account row, which is what makes them revocable.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from vidtube.config import Settings, settings as default_settings

SUPPORTED_ALGORITHMS = {"HS256", "HS384", "HS512"}


class TokenErrorReason(str, enum.Enum):
    EXPIRED = "expired"
    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"


class TokenError(Exception):
    """Raised when token verification fails."""

    def __init__(self, reason: TokenErrorReason):
        super().__init__(f"Token rejected: {reason.value}")
        self.reason = reason


class TokenConfigurationError(RuntimeError):
    """Signing keys are missing or unusable. Fatal, never shown to clients."""


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenService:
    """Issues and verifies access/refresh tokens with two independent secrets."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
    ):
        if not access_secret or not refresh_secret:
            raise TokenConfigurationError("Token signing secrets must not be empty")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise TokenConfigurationError(f"Unsupported JWT algorithm: {algorithm}")
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TokenService":
        settings = settings or default_settings
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            algorithm=settings.jwt_algorithm,
        )

    # ─── Issue ──────────────────────────────────────────

    def issue_access_token(self, account) -> IssuedToken:
        """Sign {sub, email, username, full_name} with the access secret."""
        now = datetime.now(timezone.utc)
        expires = now + self.access_ttl
        payload = {
            "sub": str(account.id),
            "email": account.email,
            "username": account.username,
            "full_name": account.full_name,
            "iat": now,
            "exp": expires,
        }
        return IssuedToken(self._encode(payload, self.access_secret), expires)

    def issue_refresh_token(self, account) -> IssuedToken:
        """Sign {sub, jti} with the refresh secret."""
        now = datetime.now(timezone.utc)
        expires = now + self.refresh_ttl
        payload = {
            "sub": str(account.id),
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": expires,
        }
        return IssuedToken(self._encode(payload, self.refresh_secret), expires)

    def _encode(self, payload: dict[str, Any], secret: str) -> str:
        try:
            return jwt.encode(payload, secret, algorithm=self.algorithm)
        except (jwt.InvalidKeyError, NotImplementedError, TypeError) as e:
            raise TokenConfigurationError(f"Token signing failed: {e}") from e

    # ─── Verify ─────────────────────────────────────────

    def verify(self, token: str, secret: str) -> dict[str, Any]:
        """Verify signature and expiry, returning the claims.

        Raises TokenError on failure.
        """
        if not token:
            raise TokenError(TokenErrorReason.MALFORMED)
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError(TokenErrorReason.EXPIRED)
        except jwt.InvalidSignatureError:
            raise TokenError(TokenErrorReason.SIGNATURE_MISMATCH)
        except jwt.InvalidTokenError:
            raise TokenError(TokenErrorReason.MALFORMED)
        return claims

    def verify_access(self, token: str) -> dict[str, Any]:
        return self.verify(token, self.access_secret)

    def verify_refresh(self, token: str) -> dict[str, Any]:
        return self.verify(token, self.refresh_secret)


def subject_id(claims: dict[str, Any]) -> uuid.UUID:
    """Parse the account id out of verified claims.

    Raises TokenError if the subject is not a UUID.
    """
    try:
        return uuid.UUID(str(claims["sub"]))
    except (KeyError, ValueError):
        raise TokenError(TokenErrorReason.MALFORMED)


def get_token_service() -> TokenService:
    """FastAPI dependency — token service built from global settings."""
    return TokenService.from_settings()
