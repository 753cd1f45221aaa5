"""Authentication helpers and FastAPI security dependencies.

`get_current_token` validates the bearer token from the request against
the `access_tokens` table and returns the matching row;
`get_current_user` returns the `User` that owns it. Both raise
`errors.Unauthenticated` (401) for a missing, malformed, expired or
revoked token so they can be attached to whole routers.
"""

from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import errors, models, services
from .database import get_session

# auto_error=False so a missing header becomes our 401 envelope instead of a 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    session: Session = Depends(get_session),
) -> models.AccessToken:
    """FastAPI dependency that returns the caller's current token row.

    The resolved user is cached on `request.state` so `get_current_user`
    does not repeat the lookup.
    """
    if credentials is None or not credentials.credentials:
        raise errors.Unauthenticated()
    user, token = services.TokenService(session).resolve(credentials.credentials)
    request.state.user = user
    return token


def get_current_user(
    request: Request,
    token: models.AccessToken = Depends(get_current_token),
) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    return request.state.user
