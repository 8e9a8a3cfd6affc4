# =============================================================================
# Agents Package — Domain Agents and Task Routing
# =============================================================================
#   - base.py: BaseAgent contract (capabilities, validation, execution envelope)
#   - cascade.py: Tiered provider retrieval with a local fallback tier
#   - travel.py / financial.py / research.py / learning.py / weather.py:
#     the five domain agents
#   - registry.py: Agent classes, default agents, task type → agent type map
#   - orchestrator.py: LangGraph graph that routes and records one task
#   - types.py: Shared dataclasses (capabilities, metrics, results)
# =============================================================================
