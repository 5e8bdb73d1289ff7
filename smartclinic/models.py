"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class AuthUser:
    """Represents the authenticated user's identity and role."""
    id: str
    name: str
    email: str
    role: str                     # "admin", "doctor", "nurse" or "member"
    gender: Optional[str] = None
    banned: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "gender": self.gender,
        }


@dataclass
class CallContext:
    """Per-call context handed to every procedure."""
    engine: Any
    user: Optional[AuthUser] = None

    @property
    def is_doctor(self) -> bool:
        return self.user is not None and self.user.role == "doctor"

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"
