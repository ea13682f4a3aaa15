"""FastAPI security dependencies for Beacon.

Usage:
    @router.post("/disasters")
    async def create_disaster(user: User = Depends(require_user)):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from beacon.api.errors import UnauthorizedError
from beacon.observability.logging import user_id_var
from beacon.security.users import DEFAULT_USER_ID, User, authenticate_user


async def require_user(
    x_user_id: Annotated[str | None, Header(alias="x-user-id")] = None,
) -> User:
    """Resolve the caller; a missing header acts as the default user."""
    user = authenticate_user(x_user_id or DEFAULT_USER_ID)
    if user is None:
        raise UnauthorizedError("User not found")
    user_id_var.set(user.sub)
    return user


CurrentUser = Annotated[User, Depends(require_user)]
