# pipapal/services/lifecycle.py
import logging
from typing import Optional, Tuple

from pipapal.core.errors import InvalidTransition, MissingRequiredField, NotFound, Unauthorized
from pipapal.core.events import emit_event
from pipapal.core.states import CollectionStatus, can_transition, is_successor
from pipapal.models.collection import LifecycleEvent
from pipapal.models.user import Actor
from pipapal.services.collections import (
    CANCEL_FIELDS,
    check_changes,
    editable_fields,
    is_unassigned_intake,
    utcnow,
)

logger = logging.getLogger(__name__)


async def apply_transition(
    repo,
    collection_id: str,
    requested: CollectionStatus,
    actor: Actor,
    waste_amount: Optional[float] = None,
    note: Optional[str] = None,
    changes: Optional[dict] = None,
) -> Tuple[dict, LifecycleEvent]:
    """Move a collection to ``requested`` on behalf of ``actor``.

    The status, any status-contingent fields, descriptive ``changes`` and
    the history entry are written in one conditional update keyed on the
    status and version that were read. If another request wrote first,
    the update matches nothing and the caller gets InvalidTransition.

    Raises NotFound, InvalidTransition, Unauthorized or MissingRequiredField.
    Returns the updated record and the emitted event.
    """
    requested = CollectionStatus(requested)
    doc = await repo.get_collection(collection_id)
    if doc is None:
        raise NotFound("Collection not found")

    src = CollectionStatus(doc["status"])
    if not is_successor(src, requested):
        raise InvalidTransition(f"Transition {src.value} -> {requested.value} not allowed")

    is_owner = doc["requester_id"] == actor.id
    is_assigned = doc.get("collector_id") is not None and doc["collector_id"] == actor.id
    if not can_transition(src, requested, actor.role, is_owner, is_assigned):
        if requested is CollectionStatus.CANCELLED:
            raise Unauthorized("Only the requester can cancel this collection")
        raise Unauthorized("Only the assigned collector can update this collection")

    extra = {}
    if changes:
        if requested is CollectionStatus.CANCELLED and is_owner and not is_unassigned_intake(doc):
            allowed = CANCEL_FIELDS
        else:
            allowed = editable_fields(doc, actor)
        extra = check_changes(changes, allowed)

    now = utcnow()
    patch = {**extra, "status": requested.value, "updated_at": now}
    if requested is CollectionStatus.COMPLETED:
        amount = waste_amount if waste_amount is not None else extra.get("waste_amount", doc.get("waste_amount"))
        if amount is None:
            raise MissingRequiredField("waste_amount", "A waste amount is required to complete a collection")
        patch["waste_amount"] = amount
        patch["completed_date"] = now

    updated = await repo.update_collection(
        collection_id,
        patch,
        expected={"status": src.value, "version": doc["version"]},
        history={
            "at": now, "by_user": actor.id,
            "from_status": src.value, "to_status": requested.value, "note": note,
        },
    )
    if updated is None:
        current = await repo.get_collection(collection_id)
        if current is None:
            raise NotFound("Collection not found")
        logger.info(
            "collection %s: %s -> %s lost to concurrent change (now %s)",
            collection_id, src.value, requested.value, current["status"],
        )
        if current["status"] == src.value:
            raise InvalidTransition("Collection changed while updating; refresh and try again")
        raise InvalidTransition(
            f"Collection is now {current['status']}; transition {src.value} -> {requested.value} not allowed"
        )

    event = LifecycleEvent(
        collection_id=collection_id,
        from_status=src,
        to_status=requested,
        actor_id=actor.id,
        actor_role=actor.role,
        at=now,
    )
    await emit_event(repo, event)
    return updated, event
