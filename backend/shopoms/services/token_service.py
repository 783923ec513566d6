# Overview: Service-layer operations for bearer tokens; signing and verification only.

"""
Stateless Session Token Service

Tokens are HS256 JWTs signed with the configured JWT_SECRET. They carry the
caller's identity (user id, display name, role) so protected routes never
look anything up server-side.

SECURITY NOTES:
- Fixed 24-hour absolute lifetime (TOKEN_LIFETIME), no idle timeout
- No server-side state, so no revocation: a token is valid until it expires
- The signing key is checked once at startup (see config.validate_config)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from ..time_utils import utcnow


TOKEN_LIFETIME = timedelta(hours=24)
TOKEN_ALGORITHM = "HS256"


class Unauthenticated(Exception):
    """No token, or something that is not a token at all."""


class TokenExpiredOrInvalid(Exception):
    """Well-formed token whose signature or expiry check failed."""


@dataclass(frozen=True)
class Identity:
    """Caller identity extracted from a verified token."""
    user_id: int
    display_name: str
    role: str

    def to_dict(self) -> dict:
        return {"id": self.user_id, "name": self.display_name, "role": self.role}


def _secret() -> str:
    return current_app.config["JWT_SECRET"]


def issue_token(identity: Identity, *, now: datetime | None = None) -> str:
    """Sign a token for `identity` valid for TOKEN_LIFETIME from `now`."""
    issued_at = (now or utcnow()).replace(tzinfo=timezone.utc)
    payload = {
        "sub": str(identity.user_id),
        "name": identity.display_name,
        "role": identity.role,
        "iat": issued_at,
        "exp": issued_at + TOKEN_LIFETIME,
    }
    return jwt.encode(payload, _secret(), algorithm=TOKEN_ALGORITHM)


def authorize(token: str | None) -> Identity:
    """
    Verify signature and expiry and return the embedded identity.

    Raises:
        Unauthenticated: token missing or not decodable as a JWT
        TokenExpiredOrInvalid: bad signature, expired, or missing claims
    """
    if not token or not token.strip():
        raise Unauthenticated("No token provided")

    try:
        claims = jwt.decode(
            token.strip(),
            _secret(),
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredOrInvalid("Token expired")
    except jwt.InvalidSignatureError:
        raise TokenExpiredOrInvalid("Invalid token signature")
    except jwt.DecodeError:
        # Not three base64 segments / not JSON: not a token at all
        raise Unauthenticated("Malformed token")
    except jwt.InvalidTokenError:
        raise TokenExpiredOrInvalid("Invalid token")

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise TokenExpiredOrInvalid("Invalid token subject")

    return Identity(
        user_id=user_id,
        display_name=claims.get("name") or "",
        role=claims.get("role") or "",
    )


def bearer_token_from_header(auth_header: str | None) -> str:
    """
    Extract the token from an `Authorization: Bearer <token>` header.

    Raises Unauthenticated if the header is missing or uses another scheme.
    """
    if not auth_header:
        raise Unauthenticated("Authentication required")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Authentication required")
    return token.strip()
