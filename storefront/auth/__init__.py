"""Authentication / authorization helpers.

Auth is deliberately lightweight:

- Users collection (name/password hash + role)
- Stateless JWT access tokens, sent as `Authorization: Bearer <token>`

Tokens are verified without touching the database, so a deleted or demoted
user keeps access until the token expires (1 hour by default).
"""

from .deps import get_current_user, require_admin
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "get_current_user",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
]
