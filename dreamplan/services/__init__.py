# =============================================================================
# Services Package — Business Logic
# =============================================================================
#   - agent_manager.py: Agent registry, task execution, metrics, credentials
#   - vault.py: Symmetric encryption for provider credentials at rest
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - fallback_ring.py: Round-robin model failover with a persistent cursor
#   - coach.py: Goal coach (chat, streaming chat, feasibility, goal plans)
# =============================================================================
