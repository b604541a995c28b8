from enum import Enum


class CollectionStatus(str, Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InterestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


# scheduled and pending are both unassigned intake states; claim treats them alike
INTAKE_STATES = frozenset({CollectionStatus.SCHEDULED, CollectionStatus.PENDING})
TERMINAL_STATES = frozenset({CollectionStatus.COMPLETED, CollectionStatus.CANCELLED})

TRANSITIONS: dict[CollectionStatus, frozenset[CollectionStatus]] = {
    CollectionStatus.SCHEDULED:   frozenset({CollectionStatus.CONFIRMED, CollectionStatus.CANCELLED}),
    CollectionStatus.PENDING:     frozenset({CollectionStatus.CONFIRMED, CollectionStatus.CANCELLED}),
    CollectionStatus.CONFIRMED:   frozenset({CollectionStatus.IN_PROGRESS, CollectionStatus.CANCELLED}),
    CollectionStatus.IN_PROGRESS: frozenset({CollectionStatus.COMPLETED, CollectionStatus.CANCELLED}),
    CollectionStatus.COMPLETED:   frozenset(),
    CollectionStatus.CANCELLED:   frozenset(),
}

INTEREST_TRANSITIONS: dict[InterestStatus, frozenset[InterestStatus]] = {
    InterestStatus.PENDING:   frozenset({InterestStatus.ACCEPTED, InterestStatus.REJECTED}),
    InterestStatus.ACCEPTED:  frozenset({InterestStatus.COMPLETED}),
    InterestStatus.REJECTED:  frozenset(),
    InterestStatus.COMPLETED: frozenset(),
}


def is_successor(src: CollectionStatus, dst: CollectionStatus) -> bool:
    return CollectionStatus(dst) in TRANSITIONS[CollectionStatus(src)]


def can_transition(
    src: CollectionStatus,
    dst: CollectionStatus,
    actor_role: str,
    is_owner: bool,
    is_assigned_collector: bool,
) -> bool:
    """Single source of truth for who may move a collection from src to dst."""
    src, dst = CollectionStatus(src), CollectionStatus(dst)
    if not is_successor(src, dst):
        return False

    match dst:
        case CollectionStatus.CANCELLED:
            return is_owner or actor_role == "admin"
        case CollectionStatus.CONFIRMED | CollectionStatus.IN_PROGRESS | CollectionStatus.COMPLETED:
            return actor_role == "collector" and is_assigned_collector
        case CollectionStatus.SCHEDULED | CollectionStatus.PENDING:
            return False
        case _:
            return False


def can_transition_interest(src: InterestStatus, dst: InterestStatus, is_collection_collector: bool) -> bool:
    if InterestStatus(dst) not in INTEREST_TRANSITIONS[InterestStatus(src)]:
        return False
    return is_collection_collector
