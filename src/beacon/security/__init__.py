"""Caller identity for Beacon.

Authentication is a stand-in: the ``x-user-id`` header names one of a
fixed set of users.
"""

from beacon.security.deps import CurrentUser, require_user
from beacon.security.users import MOCK_USERS, User, authenticate_user

__all__ = [
    "MOCK_USERS",
    "CurrentUser",
    "User",
    "authenticate_user",
    "require_user",
]
