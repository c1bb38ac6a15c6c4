"""
Typed records for the four row-store tables.

The engine only ever handles these records; conversion to and from raw
spreadsheet rows lives in eventdesk.rowstore.mappers.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, field_validator

from eventdesk.domain.enums import (
    MembershipType,
    RegistrationStatus,
    RegistrationType,
    SkillLevel,
    UserRole,
    UserStatus,
)
from eventdesk.domain.status import COUNTED_STATUSES, LIVE_STATUSES


class Event(BaseModel):
    id: str
    title: str
    description: str = ""
    date: date
    start_time: time
    end_time: Optional[time] = None
    location: str = ""
    category: str = ""
    capacity: Optional[int] = None
    current_signups: int = 0
    volunteers_needed: Optional[int] = None
    current_volunteers: int = 0
    current_waitlist: int = 0
    is_recurring: bool = False
    recurring_group_id: Optional[str] = None
    confirmation_message: str = ""
    wheelchair_accessible: bool = False
    caregiver_required: bool = False
    caregiver_payment_required: bool = False
    caregiver_payment_amount: Optional[int] = None
    age_restriction: str = ""
    skill_level: Optional[SkillLevel] = None

    @field_validator("capacity", "volunteers_needed")
    @classmethod
    def zero_means_unlimited(cls, value: Optional[int]) -> Optional[int]:
        # Staff enter 0 for "no limit"
        if value is not None and value <= 0:
            return None
        return value

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and self.current_signups >= self.capacity

    @property
    def volunteers_full(self) -> bool:
        return self.volunteers_needed is not None and self.current_volunteers >= self.volunteers_needed

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, signups={self.current_signups}/{self.capacity})>"


class Registration(BaseModel):
    id: str
    event_id: str
    event_title: str = ""
    user_id: str
    user_name: str
    user_email: str
    user_phone: str = ""
    registration_type: RegistrationType
    status: RegistrationStatus
    is_caregiver: bool = False
    participant_name: str = ""
    waitlist_position: Optional[int] = None
    promoted_at: Optional[datetime] = None
    registered_at: datetime
    attended_at: Optional[datetime] = None
    dietary_requirements: str = ""
    special_needs: str = ""
    needs_wheelchair_access: bool = False
    has_caregiver_accompanying: bool = False
    caregiver_name: str = ""
    caregiver_phone: str = ""

    @property
    def display_name(self) -> str:
        """Caregiver registrations display the cared-for person."""
        if self.is_caregiver and self.participant_name:
            return self.participant_name
        return self.user_name

    @property
    def is_counted(self) -> bool:
        return self.status in COUNTED_STATUSES

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def is_pending_waitlist(self) -> bool:
        return self.status == RegistrationStatus.WAITLIST and self.waitlist_position is None

    @property
    def is_approved_waitlist(self) -> bool:
        return self.status == RegistrationStatus.WAITLIST and self.waitlist_position is not None

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, event={self.event_id}, user={self.user_id}, "
            f"type={self.registration_type.value}, status={self.status.value})>"
        )


class User(BaseModel):
    id: str
    name: str = ""
    email: str
    phone: str = ""
    role: UserRole = UserRole.PARTICIPANT
    status: UserStatus = UserStatus.PENDING
    membership_type: MembershipType = MembershipType.ADHOC
    created_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    last_updated_at: Optional[datetime] = None
    last_updated_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class RemovalRecord(BaseModel):
    id: str
    original_registration_id: str
    event_id: str
    event_title: str = ""
    user_id: str
    user_name: str = ""
    user_email: str = ""
    user_phone: str = ""
    registration_type: RegistrationType
    is_caregiver: bool = False
    participant_name: str = ""
    removed_by: str
    reason: str = ""
    removed_at: datetime
    snapshot: str = ""  # JSON dump of the removed registration
