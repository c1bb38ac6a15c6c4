"""
Row <-> record mapping.

Each table has one explicit column layout. Cells are strings:
  - absent optional values are "" and parse back to None
  - booleans are "true"/"false" (parsing is case-insensitive, sheets write TRUE)
  - dates YYYY-MM-DD, times HH:MM, timestamps ISO-8601
Rows shorter than the layout are padded with "" before parsing, so columns
appended to a sheet later do not break old rows.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Callable, Generic, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from eventdesk.domain.enums import (
    MembershipType,
    RegistrationStatus,
    RegistrationType,
    SkillLevel,
    UserRole,
    UserStatus,
)
from eventdesk.domain.records import Event, Registration, RemovalRecord, User
from eventdesk.rowstore.interface import Row

T = TypeVar("T", bound=BaseModel)


def _str(value: Optional[str]) -> str:
    return value or ""


def _optional_str(cell: str) -> Optional[str]:
    return cell or None


def _bool_out(value: bool) -> str:
    return "true" if value else "false"


def _bool_in(cell: str) -> bool:
    return cell.strip().lower() == "true"


def _int_out(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def _optional_int(cell: str) -> Optional[int]:
    cell = cell.strip()
    return int(cell) if cell else None


def _int_in(cell: str) -> int:
    cell = cell.strip()
    return int(cell) if cell else 0


def _date_out(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def _date_in(cell: str) -> date:
    return date.fromisoformat(cell.strip())


def _time_out(value: Optional[time]) -> str:
    return value.strftime("%H:%M") if value else ""


def _time_in(cell: str) -> time:
    return time.fromisoformat(cell.strip())


def _optional_time(cell: str) -> Optional[time]:
    return _time_in(cell) if cell.strip() else None


def _datetime_out(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _datetime_in(cell: str) -> datetime:
    return datetime.fromisoformat(cell.strip())


def _optional_datetime(cell: str) -> Optional[datetime]:
    return _datetime_in(cell) if cell.strip() else None


def _enum_out(value: Optional[Enum]) -> str:
    return value.value if value is not None else ""


def _enum_in(enum_cls: Type[Enum], default: Optional[Enum] = None) -> Callable[[str], Any]:
    def parse(cell: str):
        cell = cell.strip()
        if not cell:
            return default
        return enum_cls(cell)
    return parse


@dataclass(frozen=True)
class Column:
    field: str
    encode: Callable[[Any], str]
    decode: Callable[[str], Any]


def text(field: str) -> Column:
    return Column(field, _str, lambda cell: cell)


def optional_text(field: str) -> Column:
    return Column(field, _str, _optional_str)


def flag(field: str) -> Column:
    return Column(field, _bool_out, _bool_in)


def count(field: str) -> Column:
    return Column(field, _int_out, _int_in)


def optional_int(field: str) -> Column:
    return Column(field, _int_out, _optional_int)


def enum_column(field: str, enum_cls: Type[Enum], default: Optional[Enum] = None) -> Column:
    return Column(field, _enum_out, _enum_in(enum_cls, default))


class RowMapper(Generic[T]):

    def __init__(self, model: Type[T], columns: Sequence[Column]):
        self.model = model
        self.columns = tuple(columns)
        self._index = {column.field: i for i, column in enumerate(self.columns)}

    @property
    def width(self) -> int:
        return len(self.columns)

    def column_index(self, field: str) -> int:
        return self._index[field]

    def to_row(self, record: T) -> Row:
        return [column.encode(getattr(record, column.field)) for column in self.columns]

    def from_row(self, row: Sequence[str]) -> T:
        cells = list(row) + [""] * (self.width - len(row))
        values = {column.field: column.decode(cells[i] or "") for i, column in enumerate(self.columns)}
        return self.model.model_validate(values)


EVENT_MAPPER: RowMapper[Event] = RowMapper(Event, [
    text("id"),
    text("title"),
    text("description"),
    Column("date", _date_out, _date_in),
    Column("start_time", _time_out, _time_in),
    Column("end_time", _time_out, _optional_time),
    text("location"),
    text("category"),
    optional_int("capacity"),
    count("current_signups"),
    flag("wheelchair_accessible"),
    flag("caregiver_required"),
    flag("caregiver_payment_required"),
    optional_int("caregiver_payment_amount"),
    text("age_restriction"),
    enum_column("skill_level", SkillLevel),
    optional_int("volunteers_needed"),
    count("current_volunteers"),
    flag("is_recurring"),
    optional_text("recurring_group_id"),
    count("current_waitlist"),
    text("confirmation_message"),
])

REGISTRATION_MAPPER: RowMapper[Registration] = RowMapper(Registration, [
    text("id"),
    text("event_id"),
    text("event_title"),
    text("user_id"),
    text("user_name"),
    text("user_email"),
    text("user_phone"),
    enum_column("registration_type", RegistrationType, RegistrationType.PARTICIPANT),
    enum_column("status", RegistrationStatus, RegistrationStatus.REGISTERED),
    optional_int("waitlist_position"),
    text("dietary_requirements"),
    text("special_needs"),
    flag("needs_wheelchair_access"),
    flag("has_caregiver_accompanying"),
    text("caregiver_name"),
    text("caregiver_phone"),
    Column("promoted_at", _datetime_out, _optional_datetime),
    Column("registered_at", _datetime_out, _datetime_in),
    Column("attended_at", _datetime_out, _optional_datetime),
    flag("is_caregiver"),
    text("participant_name"),
])

USER_MAPPER: RowMapper[User] = RowMapper(User, [
    text("id"),
    text("name"),
    text("email"),
    text("phone"),
    enum_column("role", UserRole, UserRole.PARTICIPANT),
    enum_column("status", UserStatus, UserStatus.PENDING),
    enum_column("membership_type", MembershipType, MembershipType.ADHOC),
    Column("created_at", _datetime_out, _datetime_in),
    Column("approved_at", _datetime_out, _optional_datetime),
    optional_text("approved_by"),
    Column("last_updated_at", _datetime_out, _optional_datetime),
    optional_text("last_updated_by"),
])

REMOVAL_MAPPER: RowMapper[RemovalRecord] = RowMapper(RemovalRecord, [
    text("id"),
    text("original_registration_id"),
    text("event_id"),
    text("event_title"),
    text("user_id"),
    text("user_name"),
    text("user_email"),
    text("user_phone"),
    enum_column("registration_type", RegistrationType, RegistrationType.PARTICIPANT),
    flag("is_caregiver"),
    text("participant_name"),
    text("removed_by"),
    text("reason"),
    Column("removed_at", _datetime_out, _datetime_in),
    text("snapshot"),
])
