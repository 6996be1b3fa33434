# =============================================================================
# Market Intelligence Multi-Agent Service
# =============================================================================
# Answers market-intelligence requests with a team of specialist agents:
# a coordinator plans the work, specialists execute it in order, and a
# synthesis pass merges their output into one response. Prompts are
# grounded in the caller's uploaded knowledge documents.
#
# Package structure:
#   app/
#   ├── api/          → FastAPI route handlers and auth dependency
#   ├── agents/       → Agent registry, planner, executor, synthesizer,
#   │                    LangGraph orchestrator
#   ├── db/           → Database engine, session, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Completion client, context loader, rate limiter,
#                        API key helpers, JSON extraction
# =============================================================================
