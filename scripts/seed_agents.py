#!/usr/bin/env python3
"""
Create the five default agents in the configured database.

Usage:
    python scripts/seed_agents.py

Existing agent types are left untouched, so the script is safe to rerun.
"""

import asyncio
import logging

from dreamplan.db.engine import async_engine
from dreamplan.db.models import Base
from dreamplan.db.seed import seed_default_agents
from dreamplan.db.store import SqlAlchemyAgentStore


async def main() -> None:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    created = await seed_default_agents(SqlAlchemyAgentStore())
    print(f"Created {len(created)} agents")
    for agent_id in created:
        print(f"  {agent_id}")

    await async_engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
