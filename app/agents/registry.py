# =============================================================================
# Agent Registry — Static Catalogue of Specialist Personas
# =============================================================================
#
# Every persona the service can speak with is defined here, once, at
# import time. The registry is read-only: nothing mutates an Agent or the
# agent list after startup, so concurrent requests share it freely.
#
# AGENTS:
#   research    — information gathering and fact-checking
#   analyst     — data interpretation, SWOT, financial analysis
#   writer      — reports, proposals, bilingual content
#   strategist  — roadmaps, market entry, risk-adjusted recommendations
#   coordinator — plans workflows; never executes a workflow step
#
# Orchestration code obtains persona text only through this module,
# including the fixed synthesis instruction.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from app.config import settings
from app.errors import UnknownAgentError

COORDINATOR_ID = "coordinator"


@dataclass(frozen=True)
class Agent:
    """A named specialist persona."""

    id: str
    name: str
    name_ar: str
    description: str
    description_ar: str
    system_prompt: str
    model: str
    icon: str
    color: str


# ---------------------------------------------------------------------------
# Persona Definitions
# ---------------------------------------------------------------------------

_AGENTS: tuple[Agent, ...] = (
    Agent(
        id="research",
        name="Research Agent",
        name_ar="وكيل البحث",
        description="Deep research and information gathering",
        description_ar="البحث العميق وجمع المعلومات",
        system_prompt=(
            "You are an expert Research Agent specializing in:\n"
            "- Deep information gathering and synthesis\n"
            "- Academic and market research\n"
            "- Source verification and fact-checking\n"
            "- Comprehensive literature reviews\n"
            "- Data collection and analysis\n\n"
            "Always provide well-sourced, factual information. Cite sources "
            "when possible.\n"
            "Format your research findings clearly with sections and bullet "
            "points."
        ),
        model=settings.llm_model,
        icon="🔬",
        color="from-blue-500 to-cyan-500",
    ),
    Agent(
        id="analyst",
        name="Analysis Agent",
        name_ar="وكيل التحليل",
        description="Data analysis and insights extraction",
        description_ar="تحليل البيانات واستخراج الرؤى",
        system_prompt=(
            "You are an expert Analysis Agent specializing in:\n"
            "- Data interpretation and pattern recognition\n"
            "- Statistical analysis and trend identification\n"
            "- Business intelligence and competitive analysis\n"
            "- SWOT analysis and strategic assessment\n"
            "- Financial analysis and forecasting\n\n"
            "Always provide actionable insights with clear reasoning.\n"
            "Use tables, chart descriptions, and structured analysis formats."
        ),
        model=settings.llm_model,
        icon="📊",
        color="from-purple-500 to-pink-500",
    ),
    Agent(
        id="writer",
        name="Writer Agent",
        name_ar="وكيل الكتابة",
        description="Content creation and editing",
        description_ar="إنشاء المحتوى وتحريره",
        system_prompt=(
            "You are an expert Writer Agent specializing in:\n"
            "- Professional content creation\n"
            "- Technical and business writing\n"
            "- Report and proposal drafting\n"
            "- Editing and proofreading\n"
            "- Multilingual content (English and Arabic)\n\n"
            "Always produce clear, well-structured, and engaging content.\n"
            "Adapt your tone and style to the context and audience."
        ),
        model=settings.llm_model,
        icon="✍️",
        color="from-green-500 to-emerald-500",
    ),
    Agent(
        id="strategist",
        name="Strategy Agent",
        name_ar="وكيل الاستراتيجية",
        description="Strategic planning and recommendations",
        description_ar="التخطيط الاستراتيجي والتوصيات",
        system_prompt=(
            "You are an expert Strategy Agent specializing in:\n"
            "- Strategic planning and roadmap development\n"
            "- Business model analysis and optimization\n"
            "- Market entry and expansion strategies\n"
            "- Risk assessment and mitigation\n"
            "- Decision frameworks and recommendations\n\n"
            "Always provide actionable strategic recommendations.\n"
            "Consider multiple scenarios and provide risk-adjusted advice."
        ),
        model=settings.llm_model,
        icon="🎯",
        color="from-orange-500 to-red-500",
    ),
    Agent(
        id=COORDINATOR_ID,
        name="Coordinator Agent",
        name_ar="وكيل التنسيق",
        description="Orchestrates multi-agent workflows",
        description_ar="ينسق سير العمل متعدد الوكلاء",
        system_prompt=(
            "You are the Coordinator Agent. Your role is to:\n"
            "- Analyze user requests and break them into subtasks\n"
            "- Assign tasks to appropriate specialist agents\n"
            "- Synthesize responses from multiple agents\n"
            "- Ensure coherent and comprehensive final outputs\n"
            "- Manage autonomous workflow execution\n\n"
            "When given a complex task, first analyze it and plan the "
            "workflow.\n"
            "Return a JSON workflow plan when asked for a plan."
        ),
        model=settings.llm_model,
        icon="🤖",
        color="from-violet-500 to-purple-500",
    ),
)

# System instruction for the final merge of step results
SYNTHESIS_INSTRUCTION = (
    "You are a synthesis expert. Create cohesive, professional reports "
    "from multiple sources."
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class AgentRegistry:
    """Read-only lookup table over a fixed, ordered set of agents."""

    def __init__(self, agents: tuple[Agent, ...]) -> None:
        self._agents = tuple(agents)
        self._by_id = {agent.id: agent for agent in self._agents}
        if len(self._by_id) != len(self._agents):
            raise ValueError("Agent ids must be unique")
        if COORDINATOR_ID not in self._by_id:
            raise ValueError(f"Registry requires a '{COORDINATOR_ID}' agent")

    def list_agents(self) -> tuple[Agent, ...]:
        return self._agents

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._by_id.get(agent_id)

    def require_agent(self, agent_id: str) -> Agent:
        """Like get_agent(), but raises UnknownAgentError when missing."""
        agent = self._by_id.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def specialists(self) -> tuple[Agent, ...]:
        """Agents that may be assigned workflow steps."""
        return tuple(a for a in self._agents if a.id != COORDINATOR_ID)

    @property
    def coordinator(self) -> Agent:
        return self._by_id[COORDINATOR_ID]


registry = AgentRegistry(_AGENTS)


def get_registry() -> AgentRegistry:
    """Return the process-wide registry."""
    return registry
