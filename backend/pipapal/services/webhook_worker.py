import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-PipaPal-Signature"


async def deliver_one(rec: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    timeout = httpx.Timeout(10.0, connect=5.0)
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: rec["sig"],
        }
        r = await client.post(rec["target"], json=rec["body"], headers=headers)
        return r.status_code


async def process_next(repo, transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
    """Deliver one due outbox record. Returns False when nothing was due."""
    now = datetime.now(timezone.utc)
    rec = await repo.claim_outbox(now)
    if not rec:
        return False

    status = None
    try:
        status = await deliver_one(rec, transport=transport)
    except Exception as exc:
        logger.warning("webhook %s delivery failed: %r", rec["target"], exc)

    if status and 200 <= status < 300:
        await repo.update_outbox(rec["_id"], {"status": "delivered", "delivered_at": datetime.now(timezone.utc)})
        return True

    attempts = rec.get("attempts", 0) + 1
    if attempts >= rec.get("max_attempts", 6):
        logger.warning("webhook %s gave up after %d attempts", rec["target"], attempts)
        await repo.update_outbox(rec["_id"], {"status": "failed", "attempts": attempts})
        return True

    delay = min(60, 2 ** attempts)  # backoff up to 60s
    await repo.update_outbox(rec["_id"], {
        "status": "pending",
        "attempts": attempts,
        "next_try_at": datetime.now(timezone.utc) + timedelta(seconds=delay),
    })
    return True


async def run_outbox_loop(repo):
    while True:
        if not await process_next(repo):
            await asyncio.sleep(0.5)
