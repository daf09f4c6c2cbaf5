"""JWT access token creation and validation (ES256).

Shared by the auth router (issuance), the request dependencies
(validation) and the idempotency/rate-limit gates, which only need the
verified subject to scope their keys.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# Ephemeral EC key pair generated on import: tokens do not survive a
# restart and are not shared between processes.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "microcourses"
AUDIENCE = "microcourses-api"
ACCESS_TOKEN_TTL_MIN = 60


def create_access_token(*, sub: str, role: str, ttl_minutes: int | None = None) -> str:
    """Build and sign an access token.

    The role claim is informational; the request dependencies reload the
    user and trust the stored role, so promotions and approvals apply
    without re-issuing tokens.
    """
    now = datetime.now(UTC)
    ttl = ACCESS_TOKEN_TTL_MIN if ttl_minutes is None else ttl_minutes
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "role": role,
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 to rule out alg:none and alg switching.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )


def subject_from_header(authorization: str | None) -> str | None:
    """Verified `sub` of a `Bearer` Authorization header, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        claims = decode_access_token(authorization[7:])
    except jwt.InvalidTokenError:
        return None
    return claims.get("sub") or None
