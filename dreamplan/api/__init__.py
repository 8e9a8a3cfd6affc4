# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - agents.py: Agent registry, task execution, monitoring, credentials
#   - chat.py: Goal coach chat, streaming chat, feasibility analysis
#   - deps.py: Dependencies that read shared services from app.state
# =============================================================================
