"""
Create the schema and, optionally, demo data for local runs and load tests.

    python -m facility_access.db.init_db [--demo]

Schema migrations are out of scope; this only runs `create_all`.
"""

import argparse
import asyncio
from datetime import date, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.logging import get_logger, setup_logging
from facility_access.db.base import Base
from facility_access.db.session import SessionLocal, engine
from facility_access.models import EntranceToken, Facility, Subscription, TimeSlot

logger = get_logger(__name__)

DEMO_MEMBERS = 500

DEMO_POOL_SLOTS = [
    (time(7, 0), time(8, 0), 30, "open"),
    (time(8, 0), time(10, 0), 40, "male"),
    (time(10, 0), time(12, 0), 40, "female"),
    (time(17, 0), time(18, 0), 20, "privileged"),
    (time(18, 0), time(20, 0), 40, "open"),
]


async def seed_demo(db: AsyncSession, members: int = DEMO_MEMBERS) -> tuple[Facility, Facility]:
    """A pool with a day of sessions and a gym, every member subscribed to both."""
    pool = Facility(code="pool", name="Swimming Pool", kind="scheduled", restriction="open")
    pool.tokens = [EntranceToken(token="POOL-DEMO-0001", label="main entrance")]
    pool.time_slots = [
        TimeSlot(start_time=start, end_time=end, capacity=capacity, restriction=restriction)
        for start, end, capacity, restriction in DEMO_POOL_SLOTS
    ]
    gym = Facility(code="gym", name="Gym", kind="open_access", restriction="open", daily_capacity=200)
    gym.tokens = [EntranceToken(token="GYM-DEMO-0001")]
    db.add_all([pool, gym])
    await db.flush()

    paid_until = date.today() + timedelta(days=30)
    db.add_all([
        Subscription(member_id=member_id, facility_id=facility.id, status="active", next_payment_date=paid_until)
        for facility in (pool, gym)
        for member_id in range(1, members + 1)
    ])
    await db.commit()
    logger.info("demo_data_seeded", facilities=[pool.code, gym.code], members=members)
    return pool, gym


async def init_db(demo: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("schema_created")

    if demo:
        async with SessionLocal() as session:
            await seed_demo(session)
    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the facility access schema")
    parser.add_argument("--demo", action="store_true", help="also seed demo facilities and members")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(init_db(demo=args.demo))


if __name__ == "__main__":
    main()
