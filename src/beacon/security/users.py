"""Fixed user directory standing in for a real identity provider."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class User:
    """Caller identity resolved from the ``x-user-id`` header."""

    sub: str  # Subject (user ID)
    name: str
    email: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return "admin" in self.roles

    def can_modify(self, owner_id: str) -> bool:
        """Owners and admins may change a record."""
        return self.is_admin or self.sub == owner_id


DEFAULT_USER_ID = "netrunnerX"

MOCK_USERS: dict[str, User] = {
    "netrunnerX": User(
        sub="netrunnerX", name="NetRunner X", email="netrunner@disaster.org", roles=("admin",)
    ),
    "reliefAdmin": User(
        sub="reliefAdmin", name="Relief Admin", email="admin@relief.org", roles=("admin",)
    ),
    "contributor1": User(
        sub="contributor1",
        name="Emergency Contributor",
        email="contributor@emergency.org",
        roles=("contributor",),
    ),
    "citizen1": User(
        sub="citizen1",
        name="Concerned Citizen",
        email="citizen@community.org",
        roles=("contributor",),
    ),
}


def authenticate_user(user_id: str) -> User | None:
    return MOCK_USERS.get(user_id)
