"""Seed development data: creates tables, a buyer/seller pair and their conversation."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert

from market_chat.infrastructure.db.base import Base
from market_chat.infrastructure.db.models import UserModel
from market_chat.infrastructure.db.session import AsyncSessionLocal, engine, sql_uow
from market_chat.services import message_service

logger = logging.getLogger(__name__)

BUYER_ID = 42
SELLER_ID = 7


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await session.execute(
            pg_insert(UserModel)
            .values([
                {"id": BUYER_ID, "username": "buyer_anna"},
                {"id": SELLER_ID, "username": "ceramics_studio"},
            ])
            .on_conflict_do_nothing(index_elements=["id"])
        )
        await session.commit()

    messages_data = [
        (BUYER_ID, SELLER_ID, "Hi! Is the blue glazed bowl still available?"),
        (SELLER_ID, BUYER_ID, "Hello! Yes, two left in stock."),
        (BUYER_ID, SELLER_ID, "Great, can you ship to Lisbon?"),
        (SELLER_ID, BUYER_ID, "Sure, shipping takes about five days."),
    ]
    async with sql_uow() as uow:
        for sender_id, receiver_id, content in messages_data:
            await message_service.create_message(sender_id, receiver_id, content, uow)

    logger.info(
        "Seeded conversation %d <-> %d with %d messages",
        BUYER_ID, SELLER_ID, len(messages_data),
    )

    await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())


if __name__ == "__main__":
    main()
