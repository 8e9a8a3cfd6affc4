# =============================================================================
# Research Agent — Market Research, Competition, Feasibility
# =============================================================================
#
# PROVIDER LADDER (conductMarketResearch):
#   NewsAPI headlines + industry knowledge base ──▶ knowledge base alone
#
# analyzeCompetition and validateFeasibility read from the built-in
# industry tables and scoring rules; they make no network calls.
# =============================================================================

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import Field

from dreamplan.agents.base import BaseAgent, TaskParams, TaskSpec
from dreamplan.agents.cascade import (
    ProviderError,
    ProviderTier,
    RetrievalCascade,
    get_json,
    require,
)
from dreamplan.agents.types import AgentCapability, AgentType

logger = logging.getLogger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2/everything"

INDUSTRY_DATA: dict[str, dict[str, Any]] = {
    "technology": {
        "marketSize": "$5.2T globally",
        "growthRate": "8.2% CAGR",
        "keyTrends": ["AI/ML adoption", "Cloud-first strategies", "Cybersecurity focus",
                      "Remote work tools"],
        "opportunities": ["AI integration", "IoT expansion", "Green tech",
                          "Digital transformation"],
        "challenges": ["Talent shortage", "Regulatory compliance", "Data privacy",
                       "Competition"],
        "marketSegments": ["Software", "Hardware", "Services", "Consulting"],
    },
    "healthcare": {
        "marketSize": "$8.45T globally",
        "growthRate": "5.4% CAGR",
        "keyTrends": ["Telemedicine growth", "AI diagnostics", "Personalized medicine",
                      "Digital health"],
        "opportunities": ["Aging population", "Emerging markets", "Preventive care",
                          "Health tech"],
        "challenges": ["Regulatory hurdles", "High costs", "Data security",
                       "Access inequality"],
        "marketSegments": ["Pharmaceuticals", "Medical devices", "Healthcare services",
                           "Digital health"],
    },
    "finance": {
        "marketSize": "$22.5T globally",
        "growthRate": "6.0% CAGR",
        "keyTrends": ["Digital banking", "Cryptocurrency", "RegTech", "Open banking"],
        "opportunities": ["Fintech innovation", "Emerging markets", "Sustainable finance",
                          "AI/ML"],
        "challenges": ["Regulatory changes", "Cybersecurity", "Competition",
                       "Economic uncertainty"],
        "marketSegments": ["Banking", "Insurance", "Investment", "Payments"],
    },
}

GENERIC_INDUSTRY: dict[str, Any] = {
    "marketSize": "Market size data not available",
    "growthRate": "Growth rate varies by segment",
    "keyTrends": ["Digital transformation", "Sustainability focus",
                  "Customer-centric approaches"],
    "opportunities": ["Innovation", "Market expansion", "Efficiency improvements"],
    "challenges": ["Competition", "Regulation", "Economic factors"],
    "marketSegments": ["Traditional segments", "Emerging niches"],
}

MARKET_STRUCTURES = {
    "technology": "Highly competitive with dominant platforms",
    "healthcare": "Fragmented with regulatory barriers",
    "finance": "Consolidated with regulatory oversight",
}

TOP_COMPETITORS = {
    "technology": ["Google", "Microsoft", "Amazon", "Apple", "Meta"],
    "healthcare": ["UnitedHealth", "CVS Health", "Johnson & Johnson", "Pfizer", "Roche"],
    "finance": ["JPMorgan Chase", "Bank of America", "Wells Fargo", "Citigroup",
                "Goldman Sachs"],
}

COMPETITIVE_FACTORS = {
    "technology": ["Innovation speed", "Platform effects", "Data advantages",
                   "Talent acquisition"],
    "healthcare": ["Clinical outcomes", "Cost efficiency", "Regulatory compliance",
                   "Patient experience"],
    "finance": ["Trust and reputation", "Regulatory capital", "Technology infrastructure",
                "Customer relationships"],
}

MARKET_BARRIERS = {
    "technology": ["High R&D costs", "Network effects", "Talent requirements",
                   "Patent protection"],
    "healthcare": ["Regulatory approval", "Clinical trials", "Safety requirements",
                   "Insurance coverage"],
    "finance": ["Regulatory capital", "Compliance costs", "Consumer trust",
                "Technology investment"],
}


# ---------------------------------------------------------------------------
# Parameter Models
# ---------------------------------------------------------------------------


class MarketResearchParams(TaskParams):
    industry: str = Field(min_length=1)
    region: str = "global"
    timeframe: str = "1year"


class CompetitionParams(TaskParams):
    industry: str = Field(min_length=1)
    competitors: list[str] = Field(default_factory=list)


class FeasibilityParams(TaskParams):
    goal_type: str
    parameters: dict[str, Any]


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class ResearchAgent(BaseAgent):
    """Market research, competitive landscape and feasibility checks."""

    agent_type = AgentType.RESEARCH

    TASK_ALIASES = {
        "marketResearch": "conductMarketResearch",
        "trendAnalysis": "conductMarketResearch",
        "competitiveAnalysis": "analyzeCompetition",
        "feasibilityStudy": "validateFeasibility",
    }

    CAPABILITIES = [
        AgentCapability.from_model(
            "conductMarketResearch", "Research market conditions and trends",
            MarketResearchParams,
        ),
        AgentCapability.from_model(
            "analyzeCompetition", "Analyze competitive landscape", CompetitionParams,
        ),
        AgentCapability.from_model(
            "validateFeasibility", "Validate goal feasibility with real-world data",
            FeasibilityParams,
        ),
    ]

    def task_specs(self) -> dict[str, TaskSpec]:
        return {
            "conductMarketResearch": TaskSpec(
                self.conduct_market_research, MarketResearchParams, 0.85,
            ),
            "analyzeCompetition": TaskSpec(
                self.analyze_competition, CompetitionParams, 0.8,
            ),
            "validateFeasibility": TaskSpec(
                self.validate_feasibility, FeasibilityParams, 0.75,
            ),
        }

    async def conduct_market_research(self, params: MarketResearchParams) -> dict[str, Any]:
        logger.info(
            "Conducting market research for %s industry in %s", params.industry, params.region,
        )
        api_key = self.credential_value("newsapi")

        cascade = RetrievalCascade(
            "conductMarketResearch",
            tiers=[
                ProviderTier(
                    "newsapi",
                    lambda: self._newsapi_research(params, api_key),
                    enabled=api_key is not None,
                ),
            ],
            fallback=lambda: _research_report(params, recent_news=[]),
            fallback_source="industry knowledge base",
        )
        return (await cascade.run()).payload

    async def _newsapi_research(
        self, params: MarketResearchParams, api_key: str | None,
    ) -> dict[str, Any]:
        body = await get_json(
            self.http,
            NEWSAPI_URL,
            params={
                "q": f'"{params.industry} market trends"',
                "sortBy": "publishedAt",
                "language": "en",
                "pageSize": 5,
            },
            headers={"X-Api-Key": api_key or ""},
        )
        if body.get("status") != "ok":
            raise ProviderError(f"NewsAPI error: {body.get('message', 'unknown')}")

        news = [
            {
                "headline": require(article, "title"),
                "summary": article.get("description"),
                "source": (article.get("source") or {}).get("name"),
                "publishedAt": article.get("publishedAt"),
                "url": article.get("url"),
            }
            for article in require(body, "articles")[:3]
        ]
        payload = _research_report(params, recent_news=news)
        payload["dataSource"] = "newsapi"
        return payload

    async def analyze_competition(self, params: CompetitionParams) -> dict[str, Any]:
        logger.info("Analyzing competition in %s industry", params.industry)
        key = params.industry.lower()
        return {
            "industry": params.industry,
            "marketStructure": MARKET_STRUCTURES.get(key, "Varies by market segment"),
            "topCompetitors": TOP_COMPETITORS.get(key, ["Market leaders vary by segment"]),
            "namedCompetitors": params.competitors,
            "competitiveFactors": COMPETITIVE_FACTORS.get(
                key, ["Quality", "Price", "Service", "Innovation"],
            ),
            "marketShare": {
                "structure": "Market share data varies by segment and region",
                "concentration": "High" if key == "technology" else "Medium",
                "changeRate": "Market shares shift based on innovation and strategy",
            },
            "barriers": MARKET_BARRIERS.get(
                key, ["Capital requirements", "Regulatory barriers", "Competition"],
            ),
            "swotAnalysis": {
                "strengths": ["Market opportunities", "Innovation potential", "Growing demand"],
                "weaknesses": ["High competition", "Resource requirements",
                               "Market volatility"],
                "opportunities": ["Emerging technologies", "New markets",
                                  "Changing consumer needs"],
                "threats": ["Regulatory changes", "Economic downturns",
                            "Competitive pressure"],
            },
            "analysisDate": datetime.now(UTC).isoformat(),
            "dataSource": "Competitive intelligence database",
        }

    async def validate_feasibility(self, params: FeasibilityParams) -> dict[str, Any]:
        logger.info("Validating feasibility for %s goal", params.goal_type)
        return {
            "goalType": params.goal_type,
            "feasibilityScore": feasibility_score(params.goal_type, params.parameters),
            "factors": [
                "Market conditions",
                "Resource availability",
                "Timeline realism",
                "Skill requirements",
                "Financial investment",
                "External dependencies",
            ],
            "recommendations": [
                "Break down into smaller milestones",
                "Secure necessary resources early",
                "Build required skills gradually",
                "Monitor progress regularly",
                "Have contingency plans",
                "Seek expert guidance when needed",
            ],
            "risks": [
                "Market volatility",
                "Resource constraints",
                "Timeline pressure",
                "Competition",
                "Regulatory changes",
                "Technology disruption",
            ],
            "timeline": {
                "minimum": "6 months",
                "realistic": "12-18 months",
                "conservative": "24 months",
                "factors": ["Complexity", "Resources", "Dependencies", "Market conditions"],
            },
            "resources": {
                "financial": "Varies by goal scope",
                "time": "10-20 hours per week",
                "skills": "Industry-specific expertise",
                "tools": "Professional software/platforms",
                "support": "Mentors, advisors, or consultants",
            },
            "validationDate": datetime.now(UTC).isoformat(),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_LEADING_INT = re.compile(r"\s*(\d+)")


def industry_profile(industry: str) -> dict[str, Any]:
    return dict(INDUSTRY_DATA.get(industry.lower(), GENERIC_INDUSTRY))


def feasibility_score(goal_type: str, parameters: dict[str, Any]) -> int:
    """Rule-based score clamped to [10, 95]."""
    score = 70
    if "financial" in goal_type:
        score += 10
    if "learning" in goal_type:
        score += 15
    if "business" in goal_type:
        score -= 10

    match = _LEADING_INT.match(str(parameters.get("timeline", "")))
    if match:
        months = int(match.group(1))
        if months > 24:
            score += 10
        if months < 6:
            score -= 15

    return max(10, min(95, score))


def _research_report(
    params: MarketResearchParams, recent_news: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "industry": params.industry,
        "region": params.region,
        "timeframe": params.timeframe,
        **industry_profile(params.industry),
        "recentNews": recent_news,
        "researchDate": datetime.now(UTC).isoformat(),
    }
