"""Auth module exports."""
from cluehunt.auth.jwt import (
    create_access_token,
    verify_token,
    get_current_user,
    get_current_active_admin,
)

__all__ = [
    "create_access_token",
    "verify_token",
    "get_current_user",
    "get_current_active_admin",
]
