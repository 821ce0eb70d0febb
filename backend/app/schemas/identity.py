"""
Identity record as returned by the external identity provider (IVAO).

Field names follow the provider's camelCase payload; the core trusts this
record completely.
"""

from typing import Any, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator


class IdentityUser(BaseModel):
    id: str
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: Optional[EmailStr] = None
    rating: Optional[Any] = None
    division: Optional[str] = None
    country: Optional[str] = None
    atc_rating: Optional[Any] = Field(None, alias="atcRating")
    pilot_rating: Optional[Any] = Field(None, alias="pilotRating")

    model_config = {"populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # the provider sends VIDs as integers
        return str(value) if isinstance(value, int) else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CurrentUser(BaseModel):
    """Authenticated actor threaded through every mutating service call."""

    identity: IdentityUser
    is_staff: bool = False

    @property
    def id(self) -> str:
        return self.identity.id


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: IdentityUser
    is_staff: bool
    name: str
