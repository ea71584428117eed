"""The authenticated caller, passed explicitly into every core operation."""

from dataclasses import dataclass

from src.cm_common.enums import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str  # UserRole value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_rider(self) -> bool:
        return self.role == UserRole.RIDER

    @property
    def is_seller(self) -> bool:
        return self.role == UserRole.SELLER
