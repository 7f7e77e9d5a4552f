"""Request authorization guards.

``get_current_user`` rejects the request unless a valid bearer token for an
existing user is presented. ``get_optional_user`` runs the same checks but
never rejects. ``require_admin`` must run after one of them.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request

from ..crud import UserStore
from ..errors import forbidden, internal, unauthenticated
from ..models import User
from ..services.tokens import TokenExpired, TokenInvalid, TokenService
from .services import get_token_service, get_user_store

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _authenticate(authorization: Optional[str], users: UserStore, tokens: TokenService) -> User:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise unauthenticated("Access denied. No valid token provided.")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise unauthenticated("Access denied. No token provided.")

    try:
        user_id = tokens.verify(token)
        user = users.get(user_id)
    except TokenInvalid:
        raise unauthenticated("Invalid token.")
    except TokenExpired:
        raise unauthenticated("Token expired.")
    except Exception:
        logger.exception("Authentication error")
        raise internal("Server error during authentication.")

    if user is None:
        raise unauthenticated("Token is not valid. User not found.")
    return user


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    users: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    user = _authenticate(authorization, users, tokens)
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    users: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[User]:
    """Attach the caller's identity when possible, never reject."""
    request.state.user = None
    try:
        user = _authenticate(authorization, users, tokens)
    except Exception as e:
        logger.debug(f"Optional auth skipped: {e}")
        return None
    request.state.user = user
    return user


def require_admin(request: Request) -> User:
    """Require an identity attached by a prior guard, with the admin role."""
    user = getattr(request.state, "user", None)
    if user is None:
        raise unauthenticated("Admin access required.")
    if not user.is_admin:
        raise forbidden("Admin access required.")
    return user
