"""
Pydantic schemas for registration-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from eventdesk.domain.enums import RegistrationStatus, RegistrationType
from eventdesk.schemas.common import Email, LoosePhone, Phone, SafeText


class RegistrationCreate(BaseModel):
    event_id: str = Field(..., min_length=1)
    # Filled from the identity token by the API; staff may register someone else
    user_id: Optional[str] = None
    user_name: SafeText = Field(..., min_length=1, max_length=100)
    user_email: Email
    user_phone: Phone = ""
    registration_type: RegistrationType = RegistrationType.PARTICIPANT
    is_caregiver: bool = False
    participant_name: SafeText = Field("", max_length=100)
    dietary_requirements: SafeText = Field("", max_length=500)
    special_needs: SafeText = Field("", max_length=500)
    needs_wheelchair_access: bool = False
    has_caregiver_accompanying: bool = False
    caregiver_name: SafeText = Field("", max_length=100)
    caregiver_phone: LoosePhone = ""


class RegistrationResponse(BaseModel):
    id: str
    event_id: str
    event_title: str
    user_id: str
    user_name: str
    user_email: str
    user_phone: str
    registration_type: RegistrationType
    status: RegistrationStatus
    is_caregiver: bool
    participant_name: str
    display_name: str
    waitlist_position: Optional[int]
    promoted_at: Optional[datetime]
    registered_at: datetime
    attended_at: Optional[datetime]
    dietary_requirements: str
    special_needs: str
    needs_wheelchair_access: bool
    has_caregiver_accompanying: bool
    caregiver_name: str
    caregiver_phone: str

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: RegistrationStatus


class RemovalRequest(BaseModel):
    reason: SafeText = Field("", max_length=500)


class RemovalResponse(BaseModel):
    id: str
    original_registration_id: str
    event_id: str
    event_title: str
    user_id: str
    user_name: str
    registration_type: RegistrationType
    is_caregiver: bool
    participant_name: str
    removed_by: str
    reason: str
    removed_at: datetime

    model_config = {"from_attributes": True}


class PromoteRequest(BaseModel):
    event_id: str = Field(..., min_length=1)
    # Defaults to the lowest waitlist position
    registration_id: Optional[str] = None


class WaitlistResponse(BaseModel):
    event_id: str
    approved: list[RegistrationResponse]
    pending: list[RegistrationResponse]
