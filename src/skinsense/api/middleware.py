"""Optional Bearer-token guard for the API routes."""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <SKINSENSE_API_KEY>``.

    No key configured means the API is open.
    """
    expected: str | None = request.app.state.settings.api_key
    if expected is None:
        return

    token = credentials.credentials if credentials is not None else ""
    if not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning("Rejected request to %s: invalid or missing API key", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
