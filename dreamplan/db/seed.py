# =============================================================================
# Default Agent Seeding
# =============================================================================
#
# Creates the five stock agents (one per AgentType) if the store has no
# agent of that type yet. Safe to run repeatedly.
#
# Capabilities are taken from each agent class, so a fresh database always
# describes exactly the parameters the code validates.
# =============================================================================

from __future__ import annotations

import logging

from dreamplan.agents.registry import DEFAULT_AGENTS
from dreamplan.db.store import AgentStore

logger = logging.getLogger(__name__)


async def seed_default_agents(store: AgentStore) -> list[str]:
    """Create any missing default agents. Returns the ids created."""
    existing = {record.type for record in await store.list_agents()}

    created = []
    for definition in DEFAULT_AGENTS:
        if definition.type.value in existing:
            logger.info("Agent type %s already present, skipping", definition.type.value)
            continue
        record = await store.create_agent(
            name=definition.name,
            type=definition.type.value,
            description=definition.description,
            capabilities=definition.capabilities,
        )
        created.append(record.id)

    logger.info("Seeded %d default agents", len(created))
    return created
