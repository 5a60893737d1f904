"""Expire lapsed waitlist entries and re-offer freed slots; run from cron."""
from __future__ import annotations

import asyncio
import logging

from app.db.session import dispose_engine, get_sessionmaker
from app.services.promotion_service import sweep

logger = logging.getLogger("waitlist_sweep")


async def run_sweep() -> None:
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        result = await sweep(session)
    for promotion in result.promotions:
        logger.info(
            "Offer for %s on field %s sent to user %s",
            promotion.slot,
            promotion.field_id,
            promotion.user_id,
        )
    print(
        f"Expired {result.expired} waitlist entr(ies); "
        f"made {len(result.promotions)} offer(s)."
    )
    await dispose_engine()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_sweep())


if __name__ == "__main__":
    main()
