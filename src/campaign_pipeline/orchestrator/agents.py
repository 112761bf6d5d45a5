"""Declarative agent table: which agents exist, in which phase, and how they are called."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from ..clients.base import PipelineException

if TYPE_CHECKING:
    from ..config import ConfigLoader
    from .results import AgentResult


class PipelineDefinitionError(PipelineException):
    """The phase/agent table is inconsistent."""


class ExecutionKind(str, Enum):
    STREAMING = "streaming"
    UNARY = "unary"


@dataclass(frozen=True)
class AgentContext:
    """What a request builder may read when its agent starts."""

    run_id: str
    input: str
    results: Mapping[str, Optional["AgentResult"]] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)


RequestBuilder = Callable[[AgentContext], Dict[str, Any]]


def url_request(ctx: AgentContext) -> Dict[str, Any]:
    return {"url": ctx.input}


def research_request(ctx: AgentContext) -> Dict[str, Any]:
    """Competitor research is keyed on the industry found by the profiler."""
    return {
        "industry": infer_industry(ctx),
        "location": ctx.settings.get("location", "United States"),
        "country": ctx.settings.get("country", "US"),
    }


def planning_request(ctx: AgentContext) -> Dict[str, Any]:
    return {
        "url": ctx.input,
        "results": {agent_id: result.to_dict() if result else None for agent_id, result in ctx.results.items()},
    }


def infer_industry(ctx: AgentContext) -> str:
    profile = ctx.results.get("profiler")
    industry = getattr(profile, "business_type", None) or getattr(profile, "industry", None)
    if industry:
        return industry
    host = urlparse(ctx.input if "://" in ctx.input else f"https://{ctx.input}").netloc
    return host or ctx.input


@dataclass(frozen=True)
class AgentDefinition:
    """Static description of one agent. Immutable."""

    id: str
    name: str
    category: str
    phase: int
    kind: ExecutionKind
    endpoint: str
    result_type: str = "unknown"
    build_request: RequestBuilder = url_request
    timeout_seconds: Optional[float] = None
    description: str = ""


class PipelineDefinition:
    """
    Validated, ordered list of phases.

    Phases are numbered 1..N without gaps; every phase has at least one
    agent; agent ids are unique.
    """

    def __init__(self, agents: Sequence[AgentDefinition]) -> None:
        self._agents: List[AgentDefinition] = list(agents)
        self._by_id: Dict[str, AgentDefinition] = {a.id: a for a in self._agents}
        self._validate()
        count = max(a.phase for a in self._agents)
        self._phases: List[List[AgentDefinition]] = [
            [a for a in self._agents if a.phase == number] for number in range(1, count + 1)
        ]

    def _validate(self) -> None:
        if not self._agents:
            raise PipelineDefinitionError("Pipeline has no agents")
        if len(self._by_id) != len(self._agents):
            raise PipelineDefinitionError("Duplicate agent ids in pipeline definition")

        numbers = {a.phase for a in self._agents}
        expected = set(range(1, max(numbers) + 1))
        if min(numbers) < 1 or numbers != expected:
            missing = sorted(expected - numbers)
            raise PipelineDefinitionError(
                f"Phases must be numbered 1..{max(numbers)} without gaps (missing: {missing})"
            )

    @property
    def phases(self) -> List[List[AgentDefinition]]:
        return [list(phase) for phase in self._phases]

    @property
    def agents(self) -> List[AgentDefinition]:
        return list(self._agents)

    def get(self, agent_id: str) -> AgentDefinition:
        try:
            return self._by_id[agent_id]
        except KeyError:
            raise PipelineDefinitionError(f"Unknown agent '{agent_id}'") from None

    def __iter__(self) -> Iterator[AgentDefinition]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def configured(self, config: "ConfigLoader") -> "PipelineDefinition":
        """Apply ``agents.<id>.endpoint`` overrides from config."""
        agents = [
            replace(agent, endpoint=config.get(f"agents.{agent.id}.endpoint") or agent.endpoint)
            for agent in self._agents
        ]
        return PipelineDefinition(agents)


DEFAULT_AGENTS: tuple[AgentDefinition, ...] = (
    AgentDefinition(
        id="profiler",
        name="BrandProfiler",
        category="Business Analysis",
        phase=1,
        kind=ExecutionKind.UNARY,
        endpoint="/functions/v1/brand-analysis",
        result_type="brand_profile",
        description="Crawls the business website and builds a brand profile: industry, audience, offer.",
    ),
    AgentDefinition(
        id="research",
        name="Research",
        category="Competitor Intelligence",
        phase=2,
        kind=ExecutionKind.STREAMING,
        endpoint="/api/analyze-competitors",
        result_type="competitor_research",
        build_request=research_request,
        description="Web agent that reads the ad library for live competitor ads.",
    ),
    AgentDefinition(
        id="creative",
        name="CreativeGenerator",
        category="Ad Creative & Copy",
        phase=2,
        kind=ExecutionKind.UNARY,
        endpoint="/functions/v1/generate-preview",
        result_type="creative_set",
        description="Generates ad variants with headlines, copy and rationale.",
    ),
    AgentDefinition(
        id="planner",
        name="CampaignPlanner",
        category="Strategy & Structure",
        phase=3,
        kind=ExecutionKind.UNARY,
        endpoint="/api/agents/campaign-planner",
        result_type="campaign_plan",
        build_request=planning_request,
        description="Defines objective, budget, targeting and creative angles.",
    ),
    AgentDefinition(
        id="launch",
        name="LaunchPlanner",
        category="Projections & Tracking",
        phase=3,
        kind=ExecutionKind.UNARY,
        endpoint="/api/agents/launch-plan",
        result_type="launch_plan",
        build_request=planning_request,
        description="Projects leads, cost per lead and the reporting schedule.",
    ),
    AgentDefinition(
        id="deployer",
        name="MetaDeployer",
        category="Deterministic Deploy",
        phase=3,
        kind=ExecutionKind.UNARY,
        endpoint="/api/agents/meta-deployer",
        result_type="deploy_report",
        build_request=planning_request,
        description="Creates the campaign, ad sets and ads, all paused, with idempotency keys.",
    ),
    AgentDefinition(
        id="reporter",
        name="Reporter",
        category="Report & Next Steps",
        phase=3,
        kind=ExecutionKind.UNARY,
        endpoint="/api/agents/reporter",
        result_type="agent_report",
        build_request=planning_request,
        description="Compiles the owner report: expectations and optimisation schedule.",
    ),
)


def default_pipeline() -> PipelineDefinition:
    return PipelineDefinition(DEFAULT_AGENTS)
