"""
Authorization policy.

Decides what an authenticated user may do from the role stored on the
user row. Routes ask the policy instead of comparing identities against
configured values.
"""

from app.models.user import User, ROLE_ADMIN

ADMIN_ROLES = {ROLE_ADMIN}


def is_admin(user: User) -> bool:
    """True if the user may run admin ledger operations."""
    return user is not None and user.role in ADMIN_ROLES
