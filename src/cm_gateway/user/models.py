"""Authenticated caller as seen by the settlement core."""

from dataclasses import dataclass

from src.cm_common.enums import UserRole


@dataclass(frozen=True)
class CurrentUser:
    id: str
    username: str
    email: str
    campus: str
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
