"""Typed agent results, decoded once when an agent finishes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple


def extract_array(value: Any) -> List[Any]:
    """Pull a list out of a payload that may nest it under a few common keys."""
    if not value:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in ("data", "ads", "reviews", "results"):
            if isinstance(value.get(key), list):
                return value[key]
        for nested in value.values():
            if isinstance(nested, list):
                return nested
    return []


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AgentResult:
    """Base of the result union. ``raw`` is the payload as the endpoint sent it."""

    kind: ClassVar[str] = "unknown"
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def summary(self) -> str:
        return "Result received"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


@dataclass(frozen=True)
class UnknownResult(AgentResult):
    """Payload whose shape did not match the agent's declared result type."""

    kind: ClassVar[str] = "unknown"

    def summary(self) -> str:
        keys = ", ".join(sorted(self.raw)[:5])
        return f"Result received ({keys})" if keys else "Empty result received"


@dataclass(frozen=True)
class BrandProfile(AgentResult):
    kind: ClassVar[str] = "brand_profile"
    business_type: Optional[str] = None
    brand_name: Optional[str] = None
    target_audience: Optional[str] = None
    key_selling_points: Tuple[str, ...] = ()

    @property
    def industry(self) -> Optional[str]:
        return self.business_type

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["BrandProfile"]:
        known = ("business_type", "industry", "brand_name", "target_audience")
        if not any(payload.get(key) for key in known):
            return None
        points = payload.get("key_selling_points") or []
        return cls(
            raw=payload,
            business_type=payload.get("business_type") or payload.get("industry"),
            brand_name=payload.get("brand_name"),
            target_audience=payload.get("target_audience"),
            key_selling_points=tuple(str(p) for p in points) if isinstance(points, list) else (),
        )

    def summary(self) -> str:
        parts = [f"Industry: {self.business_type or 'unidentified'}"]
        if self.target_audience:
            parts.append(f"target customer: {self.target_audience}")
        if self.key_selling_points:
            parts.append(f"key benefits: {', '.join(self.key_selling_points[:3])}")
        return " | ".join(parts)


@dataclass(frozen=True)
class CompetitorResearch(AgentResult):
    kind: ClassVar[str] = "competitor_research"
    ad_count: int = 0
    competitor_ads: Tuple[Dict[str, Any], ...] = ()
    insights: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["CompetitorResearch"]:
        if "ad_count" not in payload and "competitor_ads" not in payload:
            return None
        ads = [ad for ad in extract_array(payload.get("competitor_ads")) if isinstance(ad, dict)]
        insights = payload.get("insights")
        return cls(
            raw=payload,
            ad_count=_int(payload.get("ad_count"), len(ads)),
            competitor_ads=tuple(ads),
            insights=insights if isinstance(insights, dict) else {},
        )

    def summary(self) -> str:
        line = f"Found {self.ad_count} competitor ads"
        opportunity = self.insights.get("opportunity")
        return f"{line} | {opportunity}" if opportunity else line


@dataclass(frozen=True)
class AdVariant:
    headline: str
    copy: str = ""
    rationale: str = ""


@dataclass(frozen=True)
class CreativeSet(AgentResult):
    kind: ClassVar[str] = "creative_set"
    ads: Tuple[AdVariant, ...] = ()

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["CreativeSet"]:
        if not isinstance(payload.get("ads"), list):
            return None
        variants = []
        for ad in extract_array(payload):
            if not isinstance(ad, dict) or not ad.get("headline"):
                continue
            variants.append(
                AdVariant(
                    headline=str(ad["headline"]),
                    copy=str(ad.get("copy") or ad.get("primary_text") or ""),
                    rationale=str(ad.get("rationale") or ""),
                )
            )
        return cls(raw=payload, ads=tuple(variants))

    def summary(self) -> str:
        return f"{len(self.ads)} ad variants generated"


@dataclass(frozen=True)
class CampaignPlan(AgentResult):
    kind: ClassVar[str] = "campaign_plan"
    objective: Optional[str] = None
    daily_budget: Optional[float] = None
    platforms: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["CampaignPlan"]:
        if not any(key in payload for key in ("objective", "platforms", "totalDailyBudget", "daily_budget")):
            return None
        budget = payload.get("totalDailyBudget", payload.get("daily_budget"))
        return cls(
            raw=payload,
            objective=payload.get("objective"),
            daily_budget=float(budget) if isinstance(budget, (int, float)) else None,
            platforms=tuple(p for p in extract_array(payload.get("platforms")) if isinstance(p, dict)),
        )

    def summary(self) -> str:
        parts = [f"Objective: {self.objective or 'unspecified'}"]
        if self.daily_budget is not None:
            parts.append(f"budget: ${self.daily_budget:g}/day")
        if self.platforms:
            parts.append(f"{len(self.platforms)} placements")
        return " | ".join(parts)


@dataclass(frozen=True)
class LaunchPlan(AgentResult):
    kind: ClassVar[str] = "launch_plan"
    projected_leads_per_week: Optional[str] = None
    projected_cost_per_lead: Optional[str] = None
    tracking: Tuple[str, ...] = ()

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["LaunchPlan"]:
        if "projectedLeadsPerWeek" not in payload and "tracking" not in payload:
            return None
        tracking = payload.get("tracking") or []
        return cls(
            raw=payload,
            projected_leads_per_week=payload.get("projectedLeadsPerWeek"),
            projected_cost_per_lead=payload.get("projectedCostPerLead"),
            tracking=tuple(str(t) for t in tracking) if isinstance(tracking, list) else (),
        )

    def summary(self) -> str:
        leads = self.projected_leads_per_week or "?"
        cpl = self.projected_cost_per_lead or "?"
        return f"Projected {leads} leads/week at {cpl} per lead"


@dataclass(frozen=True)
class DeployReport(AgentResult):
    kind: ClassVar[str] = "deploy_report"
    status: Optional[str] = None
    campaigns: int = 0
    ad_sets: int = 0
    ads: int = 0

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["DeployReport"]:
        if "status" not in payload or not any(key in payload for key in ("campaign", "adSets", "ads")):
            return None
        return cls(
            raw=payload,
            status=str(payload["status"]),
            campaigns=_int(payload.get("campaign")),
            ad_sets=_int(payload.get("adSets")),
            ads=_int(payload.get("ads")),
        )

    def summary(self) -> str:
        return f"{self.campaigns} campaign, {self.ad_sets} ad sets, {self.ads} ads created ({self.status})"


@dataclass(frozen=True)
class AgentReport(AgentResult):
    kind: ClassVar[str] = "agent_report"
    status: Optional[str] = None
    next_review: Optional[str] = None

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Optional["AgentReport"]:
        if "status" not in payload:
            return None
        return cls(raw=payload, status=str(payload["status"]), next_review=payload.get("nextReview"))

    def summary(self) -> str:
        line = f"Report {self.status}"
        return f"{line}, next review in {self.next_review}" if self.next_review else line


DECODERS: Dict[str, Callable[[Dict[str, Any]], Optional[AgentResult]]] = {
    BrandProfile.kind: BrandProfile.decode,
    CompetitorResearch.kind: CompetitorResearch.decode,
    CreativeSet.kind: CreativeSet.decode,
    CampaignPlan.kind: CampaignPlan.decode,
    LaunchPlan.kind: LaunchPlan.decode,
    DeployReport.kind: DeployReport.decode,
    AgentReport.kind: AgentReport.decode,
}


def decode_result(result_type: str, payload: Dict[str, Any]) -> AgentResult:
    """Decode ``payload`` as ``result_type``, falling back to :class:`UnknownResult`."""
    decoder = DECODERS.get(result_type)
    decoded = decoder(payload) if decoder else None
    return decoded if decoded is not None else UnknownResult(raw=payload)
