"""Executable worker that expires lapsed booking request holds."""

from __future__ import annotations

import asyncio
import logging
import os

from slotkeeper.core.database import SessionLocal
from slotkeeper.modules.booking_requests.service import build_booking_request_service

logger = logging.getLogger(__name__)


async def run_cycle() -> int:
    """Expire one batch of overdue requests in one DB transaction."""
    async with SessionLocal() as session:
        service = build_booking_request_service(session)
        expired = await service.expire_stale(limit=int(os.getenv("EXPIRY_WORKER_BATCH_SIZE", "100")))
        await session.commit()
        return expired


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    logging.basicConfig(level=os.getenv("EXPIRY_WORKER_LOG_LEVEL", "INFO"))
    mode = os.getenv("EXPIRY_WORKER_MODE", "once").strip().lower()
    poll_seconds = int(os.getenv("EXPIRY_WORKER_POLL_SECONDS", "60"))

    if mode == "once":
        expired = await run_cycle()
        logger.info("Booking request expiry worker expired %s requests", expired)
        return

    while True:
        try:
            expired = await run_cycle()
            logger.info("Booking request expiry worker expired %s requests", expired)
        except Exception:
            logger.exception("Booking request expiry worker cycle failed")
        await asyncio.sleep(poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())
