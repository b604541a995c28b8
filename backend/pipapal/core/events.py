import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from pipapal.core.config import settings
from pipapal.models.collection import LifecycleEvent

logger = logging.getLogger(__name__)

EVENT_TYPE = "collection.status.changed"
MAX_ATTEMPTS = 6

def sign(body: Dict[str, Any]) -> str:
    secret = settings.jwt_secret.encode()
    msg = json.dumps(body, separators=(",", ":"), sort_keys=True).encode()
    return hmac.new(secret, msg, hashlib.sha256).hexdigest()

async def emit_event(repo, event: LifecycleEvent) -> dict:
    """Record a lifecycle event and queue it for every enabled webhook.

    Delivery happens later in the outbox worker; callers never wait on it.
    """
    data = event.model_dump(mode="json")
    evt = await repo.insert_event({"type": EVENT_TYPE, "data": data, "created_at": event.at})
    logger.info(
        "collection %s: %s -> %s by %s",
        event.collection_id,
        event.from_status.value if event.from_status else None,
        event.to_status.value,
        event.actor_id,
    )

    for h in await repo.list_webhooks(enabled_only=True):
        body = {"type": EVENT_TYPE, "data": data, "created_at": data["at"]}
        await repo.insert_outbox({
            "event_id": evt["_id"],
            "target": h["url"],
            "body": body,
            "sig": sign(body),
            "attempts": 0,
            "max_attempts": MAX_ATTEMPTS,
            "next_try_at": datetime.now(timezone.utc),
            "status": "pending",
        })
    return evt
