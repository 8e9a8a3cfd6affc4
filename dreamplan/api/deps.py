# =============================================================================
# API Dependencies — Long-Lived Services from Application State
# =============================================================================
#
# The AgentManager and the GoalCoach are created once in the application
# lifespan (see main.py) and stored on `app.state`. Route handlers receive
# them through these dependencies, which makes them easy to swap in tests:
#
#   app.dependency_overrides[get_agent_manager] = lambda: fake_manager
#
# DESIGN DECISION: FastAPI dependency (not module globals).
# The manager holds loaded agents, decrypted credentials and an httpx
# client; tying it to the app instance keeps its lifetime explicit.
# =============================================================================

from __future__ import annotations

from fastapi import HTTPException, Request

from dreamplan.services.agent_manager import AgentManager
from dreamplan.services.coach import GoalCoach


def get_agent_manager(request: Request) -> AgentManager:
    """The AgentManager created at startup."""
    manager = getattr(request.app.state, "agent_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Agent manager is not initialized")
    return manager


def get_coach(request: Request) -> GoalCoach:
    """The GoalCoach created at startup."""
    coach = getattr(request.app.state, "coach", None)
    if coach is None:
        raise HTTPException(status_code=503, detail="Goal coach is not initialized")
    return coach
