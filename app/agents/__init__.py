# =============================================================================
# Agents Package — Multi-Agent Workflow Coordination
# =============================================================================
#   - registry.py: static catalogue of specialist personas + coordinator
#   - workflow.py: Workflow / WorkflowStep data model and statuses
#   - planner.py: coordinator prompt → validated task graph (or fallback)
#   - executor.py: runs steps in order, feeding earlier results forward
#   - synthesizer.py: merges step results into the final answer
#   - orchestrator.py: LangGraph graph (plan → execute → synthesize) and
#     the direct single-agent chat path
# =============================================================================
