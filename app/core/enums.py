from enum import Enum


class HostelStatus(str, Enum):
    active = "active"
    dropped = "dropped"
    completed = "completed"


class AllowanceStatus(str, Enum):
    open = "open"
    closed = "closed"


class WashRequestStatus(str, Enum):
    pickup_pending = "pickup_pending"
    picked_up = "picked_up"
    washing = "washing"
    completed = "completed"
    returned = "returned"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_REQUEST_STATUSES


TERMINAL_REQUEST_STATUSES = frozenset({WashRequestStatus.returned, WashRequestStatus.cancelled})

ACTIVE_REQUEST_STATUSES = frozenset(
    {
        WashRequestStatus.pickup_pending,
        WashRequestStatus.picked_up,
        WashRequestStatus.washing,
        WashRequestStatus.completed,
    }
)

# Forward step from each non-terminal state. cancelled is reachable from all of them.
NEXT_REQUEST_STATUS = {
    WashRequestStatus.pickup_pending: WashRequestStatus.picked_up,
    WashRequestStatus.picked_up: WashRequestStatus.washing,
    WashRequestStatus.washing: WashRequestStatus.completed,
    WashRequestStatus.completed: WashRequestStatus.returned,
}


def enum_values(enum_cls) -> list:
    """Persist enum values (not member names) in SQLAlchemy Enum columns."""
    return [member.value for member in enum_cls]
