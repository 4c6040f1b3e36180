"""Shared dependencies for API endpoints.

Authentication and connection-engine dependencies. Local mode uses
DEFAULT_USER_ID; hosted mode validates the JWT from the session cookie.
Tokens are issued elsewhere; this service only verifies them.

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Easy to swap implementations (local → hosted)
- Testable with mocked dependencies
"""

import uuid
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy import select

from unipile_connector.core.config import settings
from unipile_connector.core.database import async_session_factory
from unipile_connector.core.errors import UnauthorizedError
from unipile_connector.models import User
from unipile_connector.providers.factory import get_account_provider
from unipile_connector.repositories.unit_of_work import UnitOfWork
from unipile_connector.services.account_connection import AccountConnectionService


async def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from auth context.

    Validates the JWT from the httpOnly cookie when auth is enabled and
    falls back to DEFAULT_USER_ID when it is disabled.

    Validation steps (hosted mode):
    1. Read JWT from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID
    5. Check token_invalidated_before (revocation)

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure. The reason is never
            disclosed.
    """
    if not settings.auth_enabled:
        if settings.default_user_id is None:
            raise UnauthorizedError()
        return settings.default_user_id

    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()

    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
        raise UnauthorizedError() from exc

    # Security: iat is required for revocation check. A JWT without iat
    # would bypass token_invalidated_before entirely.
    iat = payload.get("iat")
    if iat is None:
        raise UnauthorizedError()

    # Connection is released before the endpoint runs, long polls included
    async with async_session_factory() as session:
        result = await session.execute(
            select(User.token_invalidated_before).where(User.id == user_id)
        )
        invalidated_before = result.scalar_one_or_none()
    if invalidated_before is not None and iat < invalidated_before.timestamp():
        raise UnauthorizedError()

    return user_id


def get_account_connection_service() -> AccountConnectionService:
    """Build the connection engine over the shared session factory and provider.

    Returns:
        AccountConnectionService configured from settings.
    """
    return AccountConnectionService(
        UnitOfWork(async_session_factory),
        get_account_provider(),
        checkpoint_ttl_seconds=settings.checkpoint_ttl_seconds,
        long_poll_default_seconds=settings.long_poll_default_seconds,
    )


# Reusable type aliases for dependency injection
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
ConnectionService = Annotated[
    AccountConnectionService, Depends(get_account_connection_service)
]
