# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - agents.py: POST /multi-agent (list-agents, chat, workflow), GET /agents
#   - deps.py: bearer API key → calling user
# =============================================================================
