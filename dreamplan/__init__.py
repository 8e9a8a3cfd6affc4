# =============================================================================
# DreamPlan Agents
# =============================================================================
# Domain agents that carry out goal-related tasks (flights, budgets, research,
# learning paths, weather), a manager that routes tasks and tracks their
# performance, and an LLM goal coach with model failover.
#
# Package structure:
#   dreamplan/
#   ├── api/          → FastAPI route handlers (agents, goal coach)
#   ├── agents/       → Domain agents, provider cascades, LangGraph task routing
#   ├── db/           → Database engine, ORM models, persistence port
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Agent manager, credential vault, LLM providers,
#                        generation fallback ring, goal coach
# =============================================================================
