"""
Seed script: creates the queen roster for every catalog season.
Run with: python -m dragrace_fantasy.scripts.seed
"""
import asyncio

from dragrace_fantasy.core.database import AsyncSessionLocal, engine, Base
from dragrace_fantasy.services.ruleset import SEASONS, seed_season_queens

import dragrace_fantasy.models.models  # noqa: F401


async def seed():
    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        for season_key, season in SEASONS.items():
            created = await seed_season_queens(db, season_key)
            if created:
                print(f"  {season['name']}: created {len(created)} queens.")
            else:
                print(f"  {season['name']}: roster already seeded, skipping.")

        await db.commit()

    print("\nSeed complete!")


if __name__ == "__main__":
    print("Seeding Drag Race Fantasy League...\n")
    asyncio.run(seed())
