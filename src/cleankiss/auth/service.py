"""Permission and role checks for the current principal.

Every check is set membership against an already-resolved snapshot: no
network or database access, and a missing permission is simply ``False``.
"""

from collections.abc import Iterable

from cleankiss.auth.principal import CurrentUser
from cleankiss.exceptions import ConfigurationError


class AuthorizationService:
    """Answers permission and role questions for the current principal.

    Args:
        current_user: Accessor for the request's principal. Required; passing
            None is a wiring mistake and fails immediately.

    Raises:
        ConfigurationError: If no principal accessor is supplied.
    """

    def __init__(self, current_user: CurrentUser | None) -> None:
        if current_user is None:
            raise ConfigurationError("AuthorizationService requires a current-user accessor")
        self._current_user = current_user

    def get_user_id(self) -> str | None:
        return self._current_user.principal.id

    def has_permission(self, permission: str) -> bool:
        return permission in self._current_user.principal.permissions

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        granted = self._current_user.principal.permissions
        return any(permission in granted for permission in permissions)

    def is_in_role(self, role: str) -> bool:
        return role in self._current_user.principal.roles
