from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import AuthenticationError, AuthorizationError

settings = get_settings()
security = HTTPBearer(auto_error=False)


async def get_current_user(
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated user.
    """
    if token is None:
        raise AuthenticationError("Missing bearer token")

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        return AuthUser(**payload)

    except (JWTError, PydanticValidationError):
        raise AuthenticationError("Could not validate credentials")


async def require_seller(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Ensure the caller acts as a seller (service role is allowed through)."""
    if current_user.role not in ("seller", "service_role"):
        raise AuthorizationError("Seller privileges required")
    return current_user


async def require_service_role(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Ensure the caller is an internal service (payment gateway, payout executor)."""
    if not current_user.is_service:
        raise AuthorizationError("Service role required")
    return current_user


def issue_token(user_id: str, role: str, email: Optional[str] = None) -> str:
    """Mint a token for internal callers and local tooling."""
    claims = {"sub": user_id, "role": role}
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
