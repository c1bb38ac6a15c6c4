"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from eventdesk.domain.enums import MembershipType, UserRole, UserStatus
from eventdesk.schemas.common import Email, LoosePhone, SafeText


class UserSignIn(BaseModel):
    """First sign-in. The id comes from the identity token."""
    name: SafeText = Field("", max_length=100)
    email: Email
    phone: LoosePhone = ""
    role: UserRole = UserRole.PARTICIPANT
    membership_type: MembershipType = MembershipType.ADHOC


class UserUpdate(BaseModel):
    # Unset fields keep their current value
    name: Optional[SafeText] = Field(None, max_length=100)
    email: Optional[Email] = None
    phone: Optional[LoosePhone] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    membership_type: Optional[MembershipType] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    role: UserRole
    status: UserStatus
    membership_type: MembershipType
    created_at: datetime
    approved_at: Optional[datetime]
    approved_by: Optional[str]
    last_updated_at: Optional[datetime]
    last_updated_by: Optional[str]
    is_active: bool

    model_config = {"from_attributes": True}


class SignInResponse(BaseModel):
    user: UserResponse
    created: bool


class QuotaResponse(BaseModel):
    membership_type: MembershipType
    week_start: date
    week_end: date
    count: int
    limit: Optional[int]
    remaining: Optional[int]
