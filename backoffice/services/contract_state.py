"""Contract status state machine.

DRAFT -> APPROVED is the only transition the application performs.
APPROVED -> EXPIRED is declared for the time-based sweeper that runs outside
this service. Every other pair is rejected.
"""

from datetime import datetime, timedelta
from enum import Enum

from backoffice.exceptions import ContractNotEditableError, InvalidTransitionError

CONTRACT_VALIDITY_DAYS = 120


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    EXPIRED = "EXPIRED"


ALLOWED_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.APPROVED}),
    ContractStatus.APPROVED: frozenset({ContractStatus.EXPIRED}),
    ContractStatus.EXPIRED: frozenset(),
}


def _coerce(status) -> ContractStatus:
    if isinstance(status, ContractStatus):
        return status
    try:
        return ContractStatus(str(status).upper())
    except ValueError:
        raise InvalidTransitionError(str(status), "?")


def can_transition(current, target) -> bool:
    try:
        return _coerce(target) in ALLOWED_TRANSITIONS[_coerce(current)]
    except InvalidTransitionError:
        return False


def ensure_transition(current, target) -> ContractStatus:
    """Return the target status or raise InvalidTransitionError."""
    if not can_transition(current, target):
        raise InvalidTransitionError(str(getattr(current, "value", current)), str(getattr(target, "value", target)))
    return _coerce(target)


def is_terminal(status) -> bool:
    return _coerce(status) is not ContractStatus.DRAFT


def ensure_editable(status) -> None:
    """Only drafts accept HTML edits."""
    if is_terminal(status):
        raise ContractNotEditableError(_coerce(status).value)


def compute_expiration(approved_at: datetime, validity_days: int = CONTRACT_VALIDITY_DAYS) -> datetime:
    return approved_at + timedelta(days=validity_days)
