"""
FastAPI authentication dependencies.

The caller is identified by the ``user_id`` claim of a bearer JWT. The
``role`` claim is carried along for logging; authorization by role is
enforced by the portal in front of this service, not here.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cbt.core.error_responses import ErrorMessages, raise_unauthorized
from cbt.core.security import decode_token

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: Optional[str] = None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    Resolve the caller from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or has
            no usable ``user_id`` claim
    """
    if credentials is None:
        raise_unauthorized(ErrorMessages.NOT_AUTHENTICATED)

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    user_id = payload.get("user_id")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)

    return CurrentUser(id=user_id, role=payload.get("role"))
