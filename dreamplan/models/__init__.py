# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the API. These are separate from the ORM
# models (dreamplan/db/models.py) and from the agent-layer dataclasses
# (dreamplan/agents/types.py).
# =============================================================================
