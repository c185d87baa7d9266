"""Access token verification.

Tokens are issued by the identity service; this module only checks the
signature, expiry and token type and hands back the claims.
"""

from typing import Any

from jose import JWTError, jwt

from coursetrack.config.settings import Settings, get_settings


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates:
    - JWT signature
    - Expiration time
    - Token type == "access"
    - Presence of the sub and role claims

    Raises:
        JWTError: If token is invalid, expired, or incomplete
    """
    settings = settings or get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    if not payload.get("sub") or not payload.get("role"):
        msg = "Token missing sub or role claim"
        raise JWTError(msg)

    return payload
