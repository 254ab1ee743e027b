"""Principal access, permission checks and bearer tokens."""

from cleankiss.auth.permissions import Permissions
from cleankiss.auth.principal import (
    ContextCurrentUser,
    CurrentUser,
    StaticCurrentUser,
    get_current_principal,
    reset_current_principal,
    set_current_principal,
)
from cleankiss.auth.service import AuthorizationService

__all__ = [
    "AuthorizationService",
    "ContextCurrentUser",
    "CurrentUser",
    "Permissions",
    "StaticCurrentUser",
    "get_current_principal",
    "reset_current_principal",
    "set_current_principal",
]
