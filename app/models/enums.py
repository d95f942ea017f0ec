from __future__ import annotations

from enum import Enum


class MovementType(str, Enum):
    RECEIVE = "RECE"
    DELIVER = "DELI"
    # Pledge legs: collateral in (balance) / collateral out (release).
    BALANCE = "COLI"
    RELEASE = "COLO"

    @property
    def opposite(self) -> "MovementType":
        return _OPPOSITE[self]


_OPPOSITE = {
    MovementType.RECEIVE: MovementType.DELIVER,
    MovementType.DELIVER: MovementType.RECEIVE,
    MovementType.BALANCE: MovementType.RELEASE,
    MovementType.RELEASE: MovementType.BALANCE,
}


class Environment(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class SendStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    SEND_FAILED = "SEND_FAILED"


class CanonicalStatus(str, Enum):
    MATCHED = "MATCHED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    UNKNOWN = "UNKNOWN"


class DispatchOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    TOTAL_FAILURE = "TOTAL_FAILURE"


class ListenerState(str, Enum):
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
