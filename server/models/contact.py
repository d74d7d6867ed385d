"""Immutable contact snapshot shared by every channel."""

from typing import Optional, Dict, Any
from pydantic import BaseModel

from models.database import ProspectListItem

# Fields copied when a contact is added to another list
SNAPSHOT_FIELDS = (
    "item_type", "name", "email", "phone", "company",
    "title", "linkedin_url", "location", "industry",
)


class ContactSnapshot(BaseModel):
    """Read-only view of a prospect list item.

    Channel fields (email, phone, linkedin_url, provider_id) are optional;
    processors treat a missing field as a skip rather than an error.
    """
    model_config = {"frozen": True}

    id: str
    list_id: Optional[str] = None
    user_id: Optional[str] = None
    item_type: str = "lead"
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    linkedin_url: Optional[str] = None
    provider_id: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None

    @classmethod
    def from_row(cls, row: ProspectListItem) -> "ContactSnapshot":
        return cls.model_validate(row.model_dump())

    @property
    def first_name(self) -> str:
        parts = (self.name or "").split(" ")
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join((self.name or "").split(" ")[1:])

    def list_payload(self) -> Dict[str, Any]:
        """Denormalized fields for copying this contact into another list."""
        return {field: getattr(self, field) for field in SNAPSHOT_FIELDS}
