# =============================================================================
# Agent Registry — Type → Class Map and Task Routing
# =============================================================================
#
# Two static tables drive the AgentManager:
#
#   AGENT_CLASSES    AgentType ──▶ BaseAgent subclass
#   TASK_AGENT_MAP   task type ──▶ AgentType
#
# Routing is a dictionary lookup. A task type missing from the map goes to
# the research agent, which answers generic questions from its knowledge
# base. Adding an agent means adding a class and its task names here.
#
# DEFAULT_AGENTS describes the five stock agents the seed routine creates.
# Their capabilities come from each class, so the stored records never
# drift from what the code accepts.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from dreamplan.agents.base import BaseAgent
from dreamplan.agents.financial import FinancialAgent
from dreamplan.agents.learning import LearningAgent
from dreamplan.agents.research import ResearchAgent
from dreamplan.agents.travel import TravelAgent
from dreamplan.agents.types import AgentCapability, AgentType
from dreamplan.agents.weather import WeatherAgent

AGENT_CLASSES: dict[AgentType, type[BaseAgent]] = {
    AgentType.TRAVEL: TravelAgent,
    AgentType.FINANCIAL: FinancialAgent,
    AgentType.RESEARCH: ResearchAgent,
    AgentType.LEARNING: LearningAgent,
    AgentType.WEATHER: WeatherAgent,
}

DEFAULT_AGENT_TYPE = AgentType.RESEARCH

TASK_AGENT_MAP: dict[str, AgentType] = {
    # Travel
    "searchFlights": AgentType.TRAVEL,
    "searchHotels": AgentType.TRAVEL,
    "checkVisaRequirements": AgentType.TRAVEL,
    "calculateTravelBudget": AgentType.TRAVEL,
    "monitorPrices": AgentType.TRAVEL,
    # Financial
    "convertCurrency": AgentType.FINANCIAL,
    "calculateSavingsPlan": AgentType.FINANCIAL,
    "analyzeInvestmentOptions": AgentType.FINANCIAL,
    "budgetOptimization": AgentType.FINANCIAL,
    "optimizeBudget": AgentType.FINANCIAL,
    "trackMarketTrends": AgentType.FINANCIAL,
    # Research
    "conductMarketResearch": AgentType.RESEARCH,
    "marketResearch": AgentType.RESEARCH,
    "competitiveAnalysis": AgentType.RESEARCH,
    "analyzeCompetition": AgentType.RESEARCH,
    "trendAnalysis": AgentType.RESEARCH,
    "feasibilityStudy": AgentType.RESEARCH,
    "validateFeasibility": AgentType.RESEARCH,
    # Learning
    "findCourses": AgentType.LEARNING,
    "findLearningResources": AgentType.LEARNING,
    "createLearningPath": AgentType.LEARNING,
    "assessSkillGap": AgentType.LEARNING,
    "assessSkillGaps": AgentType.LEARNING,
    "findCertifications": AgentType.LEARNING,
    # Weather
    "getWeatherForecast": AgentType.WEATHER,
    "getCurrentWeather": AgentType.WEATHER,
    "getWeatherAlerts": AgentType.WEATHER,
    "getOutdoorActivityAdvice": AgentType.WEATHER,
}


def resolve_agent_type(task_type: str) -> AgentType:
    """Map a task type to the agent type that serves it."""
    return TASK_AGENT_MAP.get(task_type, DEFAULT_AGENT_TYPE)


def parse_agent_type(value: str) -> AgentType | None:
    """The AgentType for a stored string, or None if it is not known."""
    try:
        return AgentType(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class AgentDefinition:
    name: str
    type: AgentType
    description: str

    @property
    def capabilities(self) -> list[AgentCapability]:
        return AGENT_CLASSES[self.type].CAPABILITIES


DEFAULT_AGENTS = [
    AgentDefinition(
        "Travel Planner",
        AgentType.TRAVEL,
        "Searches flights and hotels, checks visa rules and estimates trip budgets",
    ),
    AgentDefinition(
        "Financial Advisor",
        AgentType.FINANCIAL,
        "Converts currencies, plans savings and reviews budgets and investments",
    ),
    AgentDefinition(
        "Research Analyst",
        AgentType.RESEARCH,
        "Researches markets and competitors and validates goal feasibility",
    ),
    AgentDefinition(
        "Learning Coach",
        AgentType.LEARNING,
        "Finds courses, assesses skill gaps and builds learning paths",
    ),
    AgentDefinition(
        "Weather Advisor",
        AgentType.WEATHER,
        "Provides forecasts, weather alerts and outdoor activity advice",
    ),
]
