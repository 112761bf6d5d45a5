"""Pick the client each agent is called through."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import httpx

from ..config import ConfigLoader
from .base import UnaryClient
from .streaming import StreamingTaskClient
from .unary import FakeUnaryTaskClient, UnaryTaskClient

if TYPE_CHECKING:
    from ..orchestrator.agents import AgentDefinition


# Canned payloads for agents served by the fake client.
FAKE_RESPONSES: Dict[str, Dict[str, Any]] = {
    "profiler": {
        "brand_name": "Demo Business",
        "business_type": "local services",
        "target_audience": "Homeowners within 20km",
        "key_selling_points": ["Same-day service", "Licensed and insured", "Upfront pricing"],
    },
    "creative": {
        "ads": [
            {"headline": "Tired of overpaying?", "copy": "Upfront pricing, no surprises.", "rationale": "Pain point"},
            {"headline": "Rated 4.9 by locals", "copy": "See why neighbours call us first.", "rationale": "Social proof"},
        ]
    },
    "planner": {
        "objective": "Leads",
        "totalDailyBudget": 25,
        "platforms": [
            {"name": "Facebook", "type": "Traffic", "budget": 15, "audience": "Advantage+"},
            {"name": "Instagram", "type": "Reels", "budget": 10, "audience": "18-45"},
        ],
        "angles": ["Pain Point", "Social Proof", "Direct Offer"],
    },
    "launch": {
        "projectedLeadsPerWeek": "15-25",
        "projectedCostPerLead": "$4.50",
        "tracking": ["Meta Pixel", "UTM Parameters"],
        "reportSchedule": "Weekly, Mondays 9am",
    },
    "deployer": {"campaign": 1, "adSets": 2, "ads": 6, "status": "PAUSED"},
    "reporter": {"status": "sent", "nextReview": "48h"},
}


class ClientRouter:
    """
    Route agents to the streaming, real unary, or fake unary client.

    Streaming agents always use the streaming client. Unary agents use the
    fake client when ``agents.<id>.fake`` is set (or ``fake_all``), the real
    HTTP client otherwise.
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        *,
        streaming: Optional[StreamingTaskClient] = None,
        unary: Optional[UnaryClient] = None,
        fake: Optional[FakeUnaryTaskClient] = None,
        fake_all: bool = False,
        default_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.fake_all = fake_all
        self.default_timeout = default_timeout

        base_url = config.get("endpoints.base_url", "") if config else ""
        headers = self._headers(config)
        connect_timeout = config.get_float("endpoints.connect_timeout_seconds", 10.0) if config else 10.0
        fake_delay = config.get_float("pipeline.fake_delay_seconds", 0.0) if config else 0.0

        self.streaming = streaming or StreamingTaskClient(
            base_url=base_url, connect_timeout=connect_timeout, headers=headers, transport=transport
        )
        self.unary: UnaryClient = unary or UnaryTaskClient(base_url=base_url, timeout=None, headers=headers, transport=transport)
        self.fake = fake or FakeUnaryTaskClient(delay=fake_delay or 0.0)

    def is_fake(self, agent: "AgentDefinition") -> bool:
        if self.fake_all:
            return True
        return bool(self.config and self.config.get_bool(f"agents.{agent.id}.fake"))

    def route(self, agent: "AgentDefinition") -> Union[StreamingTaskClient, UnaryClient]:
        from ..orchestrator.agents import ExecutionKind

        if agent.kind == ExecutionKind.STREAMING:
            return self.streaming
        if self.is_fake(agent):
            if agent.endpoint not in self.fake.responses and agent.id in FAKE_RESPONSES:
                self.fake.set_response(agent.endpoint, FAKE_RESPONSES[agent.id])
            return self.fake
        return self.unary

    def timeout_for(self, agent: "AgentDefinition") -> Optional[float]:
        """Per-call budget in seconds, or ``None`` for no timeout."""
        if self.config:
            return self.config.agent_timeout(agent.id, agent.timeout_seconds)
        return agent.timeout_seconds or self.default_timeout

    @staticmethod
    def _headers(config: Optional[ConfigLoader]) -> Dict[str, str]:
        api_key = config.get("endpoints.api_key") if config else None
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}
