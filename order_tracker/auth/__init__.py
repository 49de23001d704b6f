"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users table (email / password hash + approval status + role)
- JWT session tokens valid for 24 hours

New registrations start as `pending` and cannot log in until an admin sets
them to `approved` (or `rejected`, which is permanent from the user's side).

The API reads the token from a `SameSite=strict` httpOnly cookie set by
`/api/auth/login`; `Authorization: Bearer <token>` also works for scripts.
Logout only clears the cookie: there is no server-side revocation list.
"""

from .deps import get_current_user, require_admin
from .crud import bootstrap_admin_if_needed, create_user, update_user_status

__all__ = [
    "get_current_user",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
    "update_user_status",
]
