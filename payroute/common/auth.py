"""Caller identity for protected payment routes.

Real authentication happens upstream. This service only checks the shared API
key and reads the user id the identity layer forwards in `x-user-id`.
Deployments with a different identity scheme override `require_user`.
"""

from fastapi import Header, Request
from pydantic import BaseModel

from payroute.common.errors import AuthenticationError


class AuthenticatedUser(BaseModel):
    id: str


def require_user(
    request: Request,
    x_api_key: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> AuthenticatedUser:
    """Reject calls without the configured API key or a forwarded user id."""

    if x_api_key != request.app.state.settings.api_key:
        raise AuthenticationError("invalid API key")
    if not x_user_id:
        raise AuthenticationError("missing user identity")
    return AuthenticatedUser(id=x_user_id)
