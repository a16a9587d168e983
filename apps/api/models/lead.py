"""Lead (CRM contact) records."""

from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import CamelModel

LeadSource = Literal["video", "form", "calendar", "direct"]
LeadStatus = Literal["new", "contacted", "qualified", "converted", "lost"]
LeadPriority = Literal["low", "medium", "high"]
NoteType = Literal["note", "call", "email", "meeting"]

LEAD_STATUSES = ("new", "contacted", "qualified", "converted", "lost")
# Note types that count as contacting the lead
CONTACT_NOTE_TYPES = frozenset({"call", "email", "meeting"})


class LeadNote(CamelModel):
    id: str
    text: str
    created_at: str
    type: NoteType = "note"


class Lead(CamelModel):
    """A captured contact and its follow-up history."""
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    source: LeadSource
    status: LeadStatus = "new"
    priority: LeadPriority = "medium"
    tags: List[str] = Field(default_factory=list)
    created_at: str
    last_contacted_at: Optional[str] = None
    notes: List[LeadNote] = Field(default_factory=list)
    video_id: Optional[str] = None
    custom_fields: Dict[str, str] = Field(default_factory=dict)


class LeadFormData(CamelModel):
    """Contact form submission used to create a lead."""
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    source: LeadSource
    video_id: Optional[str] = None
    custom_fields: Optional[Dict[str, str]] = None


class LeadUpdate(CamelModel):
    """Partial update; fields left unset are kept. ``id``, ``source`` and ``createdAt`` are immutable."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    tags: Optional[List[str]] = None
    last_contacted_at: Optional[str] = None
    notes: Optional[List[LeadNote]] = None
    video_id: Optional[str] = None
    custom_fields: Optional[Dict[str, str]] = None

    @field_validator("name", "email", "status", "priority", "tags", "notes", "custom_fields")
    @classmethod
    def _not_null(cls, value):
        # Required on Lead; null would drop the key from the stored record
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class LeadFilters(CamelModel):
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    source: Optional[LeadSource] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None


class LeadStats(CamelModel):
    total_leads: int = 0
    new_leads: int = 0
    qualified_leads: int = 0
    converted_leads: int = 0
    conversion_rate: int = 0
    leads_by_source: Dict[str, int] = Field(default_factory=dict)
    leads_by_status: Dict[str, int] = Field(default_factory=dict)
    recent_leads: List[Lead] = Field(default_factory=list)
