"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current principal extraction from the bearer JWT
- Admin-only guard for catalog routes
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import ValidationError

from coursetrack.auth.permissions import parse_role
from coursetrack.auth.schemas import Principal
from coursetrack.auth.security import decode_access_token
from coursetrack.core.context import set_user


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Principal:
    """Resolve the current principal from the JWT access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = getattr(request.app.state, "settings", None)
    try:
        payload = decode_access_token(token, settings)
        role = parse_role(payload["role"])
        if role is None:
            msg = f"Unknown role claim: {payload['role']}"
            raise JWTError(msg)
        principal = Principal(id=payload["sub"], role=role)
    except (JWTError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Set user in context for logging
    set_user(principal.id, principal.role.value)
    return principal


async def require_admin(
    user: Annotated[Principal, Depends(get_current_user)],
) -> Principal:
    """Require the ADMIN role."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permission",
        )
    return user


CurrentUser = Annotated[Principal, Depends(get_current_user)]
AdminUser = Annotated[Principal, Depends(require_admin)]
