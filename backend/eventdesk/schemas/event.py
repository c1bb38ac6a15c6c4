"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import date as Date, time as Time
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from eventdesk.domain.enums import RecurrenceFrequency, SkillLevel
from eventdesk.schemas.common import SafeText


class RecurrenceRule(BaseModel):
    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1, le=52)
    # Python weekday numbers, Monday=0 .. Sunday=6. Weekly only.
    weekdays: list[int] = Field(default_factory=list)
    # Exactly one end condition; neither means "no end" (capped to a year)
    count: Optional[int] = Field(None, ge=1, le=100)
    until: Optional[Date] = None

    @model_validator(mode="after")
    def check_rule(self):
        if self.count is not None and self.until is not None:
            raise ValueError("Set either count or until, not both")
        if any(day < 0 or day > 6 for day in self.weekdays):
            raise ValueError("weekdays must be between 0 (Monday) and 6 (Sunday)")
        if self.weekdays and self.frequency != RecurrenceFrequency.WEEKLY:
            raise ValueError("weekdays only apply to weekly recurrence")
        return self


class EventFields(BaseModel):
    title: SafeText = Field(..., min_length=1, max_length=255)
    description: SafeText = Field("", max_length=2000)
    date: Date
    start_time: Time
    end_time: Optional[Time] = None
    location: SafeText = Field("", max_length=255)
    category: SafeText = Field("", max_length=100)
    # 0 or absent = no limit
    capacity: Optional[int] = Field(None, ge=0, le=100000)
    volunteers_needed: Optional[int] = Field(None, ge=0, le=10000)
    confirmation_message: SafeText = Field("", max_length=1000)
    wheelchair_accessible: bool = False
    caregiver_required: bool = False
    caregiver_payment_required: bool = False
    caregiver_payment_amount: Optional[int] = Field(None, ge=0)
    age_restriction: SafeText = Field("", max_length=50)
    skill_level: Optional[SkillLevel] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class EventCreate(EventFields):
    recurrence: Optional[RecurrenceRule] = None


class EventUpdate(EventFields):
    """Full replacement of the editable fields. Counters are never taken from input."""


class EventResponse(BaseModel):
    id: str
    title: str
    description: str
    date: Date
    start_time: Time
    end_time: Optional[Time]
    location: str
    category: str
    capacity: Optional[int]
    current_signups: int
    volunteers_needed: Optional[int]
    current_volunteers: int
    current_waitlist: int
    is_recurring: bool
    recurring_group_id: Optional[str]
    confirmation_message: str
    wheelchair_accessible: bool
    caregiver_required: bool
    caregiver_payment_required: bool
    caregiver_payment_amount: Optional[int]
    age_restriction: str
    skill_level: Optional[SkillLevel]
    is_full: bool
    volunteers_full: bool

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int


class EventBatchResponse(BaseModel):
    recurring_group_id: Optional[str]
    events: list[EventResponse]
