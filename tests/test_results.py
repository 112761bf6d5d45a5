from campaign_pipeline.orchestrator.results import (
    AgentReport,
    BrandProfile,
    CampaignPlan,
    CompetitorResearch,
    CreativeSet,
    DeployReport,
    LaunchPlan,
    UnknownResult,
    decode_result,
    extract_array,
)


def test_brand_profile():
    result = decode_result(
        "brand_profile",
        {"business_type": "cafe", "target_audience": "commuters", "key_selling_points": ["fast", "cheap"]},
    )

    assert isinstance(result, BrandProfile)
    assert result.industry == "cafe"
    assert result.summary() == "Industry: cafe | target customer: commuters | key benefits: fast, cheap"


def test_competitor_research_counts_ads():
    result = decode_result("competitor_research", {"ad_count": 4})

    assert isinstance(result, CompetitorResearch)
    assert result.ad_count == 4
    assert result.summary() == "Found 4 competitor ads"

    derived = decode_result("competitor_research", {"competitor_ads": [{"a": 1}, {"b": 2}]})
    assert derived.ad_count == 2


def test_creative_set_keeps_variants_with_headlines():
    result = decode_result("creative_set", {"ads": [{"headline": "Try us"}, {"copy": "no headline"}]})

    assert isinstance(result, CreativeSet)
    assert [ad.headline for ad in result.ads] == ["Try us"]
    assert result.summary() == "1 ad variants generated"


def test_planning_results():
    plan = decode_result("campaign_plan", {"objective": "Leads", "totalDailyBudget": 25, "platforms": [{"name": "Facebook"}]})
    launch = decode_result("launch_plan", {"projectedLeadsPerWeek": "15-25", "projectedCostPerLead": "$4.50"})
    deploy = decode_result("deploy_report", {"campaign": 1, "adSets": 2, "ads": 6, "status": "PAUSED"})
    report = decode_result("agent_report", {"status": "sent", "nextReview": "48h"})

    assert isinstance(plan, CampaignPlan) and plan.daily_budget == 25
    assert isinstance(launch, LaunchPlan) and launch.summary() == "Projected 15-25 leads/week at $4.50 per lead"
    assert isinstance(deploy, DeployReport) and deploy.ads == 6
    assert isinstance(report, AgentReport) and report.summary() == "Report sent, next review in 48h"


def test_unexpected_shape_falls_back_to_unknown():
    result = decode_result("creative_set", {"variants": "none"})

    assert isinstance(result, UnknownResult)
    assert result.to_dict() == {"variants": "none"}
    assert isinstance(decode_result("no_such_type", {}), UnknownResult)


def test_extract_array():
    assert extract_array(None) == []
    assert extract_array([1]) == [1]
    assert extract_array({"data": [2]}) == [2]
    assert extract_array({"other": [3]}) == [3]
    assert extract_array({"n": 1}) == []
