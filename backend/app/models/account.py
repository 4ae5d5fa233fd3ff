"""Identity, profile and eligibility models."""

from enum import Enum

from pydantic import BaseModel, Field


class Decision(str, Enum):
    """Eligibility outcome for a conversion or plan selection."""

    ALLOWED = "allowed"
    REQUIRES_LOGIN = "requires_login"
    REQUIRES_UPGRADE = "requires_upgrade"


class Principal(BaseModel):
    """The acting identity for a session."""

    id: str | None = None
    email: str | None = None
    is_authenticated: bool = False

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()


class UserProfile(BaseModel):
    """Persisted profile state for a user. The core only reads and increments it."""

    user_id: str | None = None
    conversion_count: int = Field(default=0, ge=0)
    is_premium: bool = False
    full_name: str | None = None
