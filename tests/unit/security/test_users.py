"""Tests for caller identity resolution."""

from __future__ import annotations

import pytest

from beacon.api.errors import UnauthorizedError
from beacon.observability.logging import user_id_var
from beacon.security.deps import require_user
from beacon.security.users import MOCK_USERS, User, authenticate_user


class TestUser:
    """Test permission helpers."""

    def test_admin_can_modify_anything(self) -> None:
        """Admins are not limited to their own records."""
        admin = MOCK_USERS["reliefAdmin"]
        assert admin.is_admin
        assert admin.can_modify("someone-else")

    def test_contributor_only_own_records(self) -> None:
        """Contributors may only change what they own."""
        user = User(sub="citizen1", name="Citizen", roles=("contributor",))
        assert not user.is_admin
        assert user.can_modify("citizen1")
        assert not user.can_modify("netrunnerX")

    def test_authenticate_unknown(self) -> None:
        """Unknown ids resolve to None."""
        assert authenticate_user("mallory") is None


class TestRequireUser:
    """Test the FastAPI dependency."""

    async def test_missing_header_uses_default(self) -> None:
        """No header acts as the default user."""
        user = await require_user(None)
        assert user.sub == "netrunnerX"

    async def test_sets_log_context(self) -> None:
        """The resolved user lands in the logging context."""
        token = user_id_var.set("")
        try:
            await require_user("citizen1")
            assert user_id_var.get() == "citizen1"
        finally:
            user_id_var.reset(token)

    async def test_unknown_user_unauthorized(self) -> None:
        """Unknown ids raise 401."""
        with pytest.raises(UnauthorizedError) as exc_info:
            await require_user("mallory")
        assert exc_info.value.status_code == 401
