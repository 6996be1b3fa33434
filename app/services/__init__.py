# =============================================================================
# Services Package — Business Logic
# =============================================================================
#   - llm.py: completion client (OpenAI-compatible gateway, Anthropic)
#   - context.py: knowledge-base context loader
#   - json_extract.py: balanced JSON block extraction from LLM text
#   - rate_limiter.py: per-client request budget (in-memory or Redis)
#   - auth.py: API key generation and hashing
# =============================================================================
