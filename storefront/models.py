from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Claims:
    """Identity carried by a verified access token."""

    user_id: str
    name: str
    role: Role
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
