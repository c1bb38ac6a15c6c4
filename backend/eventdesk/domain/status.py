"""
Registration status lifecycle.

    registered -> attended | absent | cancelled
    waitlist   -> registered (promotion) | rejected | cancelled
    cancelled  -> registered (reinstatement)
    attended, absent, rejected are terminal

Every code path that changes a status goes through `ensure_transition`.
"""

from eventdesk.core.exceptions import ValidationError
from eventdesk.domain.enums import RegistrationStatus

S = RegistrationStatus

TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    S.REGISTERED: frozenset({S.ATTENDED, S.ABSENT, S.CANCELLED}),
    S.WAITLIST: frozenset({S.REGISTERED, S.REJECTED, S.CANCELLED}),
    S.CANCELLED: frozenset({S.REGISTERED}),
    S.ATTENDED: frozenset(),
    S.ABSENT: frozenset(),
    S.REJECTED: frozenset(),
}

# Statuses reflected in an event's currentSignups / currentVolunteers
COUNTED_STATUSES = frozenset({S.REGISTERED, S.ATTENDED, S.ABSENT})

# Statuses that hold the (user, event) pair for duplicate detection
LIVE_STATUSES = COUNTED_STATUSES | {S.WAITLIST}


def can_transition(current: RegistrationStatus, target: RegistrationStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: RegistrationStatus, target: RegistrationStatus) -> None:
    if not can_transition(current, target):
        raise ValidationError(
            f"Cannot change a {current.value} registration to {target.value}",
            details={"from": current.value, "to": target.value},
        )
