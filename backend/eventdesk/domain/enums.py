"""Enumerations stored as plain strings in the row store."""

import enum


class RegistrationType(str, enum.Enum):
    PARTICIPANT = "participant"
    VOLUNTEER = "volunteer"


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "registered"
    ATTENDED = "attended"
    ABSENT = "absent"
    CANCELLED = "cancelled"
    WAITLIST = "waitlist"
    REJECTED = "rejected"


class UserRole(str, enum.Enum):
    PARTICIPANT = "participant"
    VOLUNTEER = "volunteer"
    STAFF = "staff"


class UserStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    RESTRICTED = "restricted"


class MembershipType(str, enum.Enum):
    ADHOC = "adhoc"
    ONCE_WEEKLY = "once_weekly"
    TWICE_WEEKLY = "twice_weekly"
    THREE_PLUS_WEEKLY = "three_plus_weekly"


class SkillLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ALL = "all"


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # every N days
