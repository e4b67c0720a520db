"""Data models for family-tree records."""

from dataclasses import dataclass, field
from datetime import date, datetime

GENDERS = ("Male", "Female", "Other")
ROLES = ("admin", "sub-admin", "viewer")
DEFAULT_COUNTRY_CODE = "+91"


@dataclass
class Person:
    id: str
    family_id: str
    name: str
    gender: str
    date_of_birth: date
    place_of_birth: str
    current_address: str | None = None
    contact_number: str | None = None
    country_code: str = DEFAULT_COUNTRY_CODE
    email: str | None = None
    occupation: str | None = None
    photo: str | None = None  # URL or path
    parent_ids: list[str] = field(default_factory=list)
    children_ids: list[str] = field(default_factory=list)
    spouse_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_root(self) -> bool:
        return not self.parent_ids

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "family_id": self.family_id,
            "name": self.name,
            "gender": self.gender,
            "date_of_birth": self.date_of_birth.isoformat(),
            "place_of_birth": self.place_of_birth,
            "current_address": self.current_address,
            "contact_number": self.contact_number,
            "country_code": self.country_code,
            "email": self.email,
            "occupation": self.occupation,
            "photo": self.photo,
            "parent_ids": list(self.parent_ids),
            "children_ids": list(self.children_ids),
            "spouse_id": self.spouse_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_summary(self) -> dict:
        """Short summary for list views and populated relations."""
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "date_of_birth": self.date_of_birth.isoformat(),
        }

    def to_card(self) -> dict:
        """Display fields used by tree nodes and spouse cards."""
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "date_of_birth": self.date_of_birth.isoformat(),
            "photo": self.photo or None,
            "occupation": self.occupation or None,
            "current_address": self.current_address or None,
            "country_code": self.country_code or DEFAULT_COUNTRY_CODE,
            "contact_number": self.contact_number or None,
            "email": self.email or None,
        }


@dataclass
class User:
    """Authenticated principal, soft-linked to a Person by family and email."""

    id: str
    name: str
    email: str
    family_id: str
    role: str = "viewer"
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "family_id": self.family_id,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class Actor:
    """Caller context, already authenticated by the transport layer."""

    family_id: str
    actor_id: str | None = None
    email: str | None = None
    role: str = "viewer"
