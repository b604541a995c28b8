# pipapal/services/claims.py
import logging
from typing import Optional, Tuple

from pipapal.core.errors import AlreadyClaimed, InvalidState, NotFound, Unauthorized
from pipapal.core.events import emit_event
from pipapal.core.states import INTAKE_STATES, CollectionStatus
from pipapal.models.collection import LifecycleEvent
from pipapal.models.user import Actor
from pipapal.services.collections import COLLECTOR_FIELDS, check_changes, utcnow

logger = logging.getLogger(__name__)


def _ensure_claimable(doc: Optional[dict]) -> None:
    if doc is None:
        raise NotFound("Collection not found")
    if doc.get("collector_id") is not None:
        raise AlreadyClaimed("This collection has already been claimed by another collector")
    if CollectionStatus(doc["status"]) not in INTAKE_STATES:
        raise InvalidState(f"Collection is {doc['status']} and can no longer be claimed")


async def claim(
    repo, collection_id: str, collector: Actor, changes: Optional[dict] = None,
) -> Tuple[dict, LifecycleEvent]:
    """Assign ``collector`` to an unassigned intake collection.

    The only write that sets collector_id. It is conditional on
    collector_id still being null and on the status and version just read,
    so of several concurrent claims exactly one matches; the others get
    AlreadyClaimed and must not retry the same collection. ``changes`` are
    descriptive fields the new collector may set, written in the same update.
    """
    if collector.role != "collector":
        raise Unauthorized("Only collectors can claim collections")

    doc = await repo.get_collection(collection_id)
    _ensure_claimable(doc)

    extra = check_changes(changes, COLLECTOR_FIELDS) if changes else {}
    src = CollectionStatus(doc["status"])
    now = utcnow()
    updated = await repo.update_collection(
        collection_id,
        {**extra, "collector_id": collector.id, "status": CollectionStatus.CONFIRMED.value, "updated_at": now},
        expected={"collector_id": None, "status": src.value, "version": doc["version"]},
        history={
            "at": now, "by_user": collector.id,
            "from_status": src.value, "to_status": CollectionStatus.CONFIRMED.value, "note": "claimed",
        },
    )
    if updated is None:
        current = await repo.get_collection(collection_id)
        logger.info("claim of %s by %s lost the race", collection_id, collector.id)
        _ensure_claimable(current)
        # still unassigned in an intake state: another write got in between
        raise InvalidState("Collection changed while claiming; refresh and try again")

    logger.info("collection %s claimed by %s", collection_id, collector.id)
    event = LifecycleEvent(
        collection_id=collection_id,
        from_status=src,
        to_status=CollectionStatus.CONFIRMED,
        actor_id=collector.id,
        actor_role=collector.role,
        at=now,
    )
    await emit_event(repo, event)
    return updated, event
