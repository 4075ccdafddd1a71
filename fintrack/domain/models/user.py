# fintrack/domain/models/user.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMINISTRATOR = "administrator"


@dataclass
class User:
    id: int
    email: str
    name: str
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def summary(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class Identity:
    """Who is making a request, as carried by a validated session token."""

    user_id: int
    email: str
    role: Role
