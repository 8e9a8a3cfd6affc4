# =============================================================================
# Learning Agent — Courses, Skill Gaps, Learning Paths
# =============================================================================
#
# PROVIDER LADDER (findLearningResources):
#   Coursera public catalog (keyless) ──▶ curated resource database
#
# The Coursera tier needs no credential, so it only runs when
# KEYLESS_PROVIDERS_ENABLED is on.
#
# assessSkillGaps and createLearningPath are pure: role tables, substring
# skill matching and a phase breakdown of the stated goal.
# =============================================================================

from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

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

COURSERA_URL = "https://api.coursera.org/api/courses.v1"

Level = Literal["beginner", "intermediate", "advanced"]
Format = Literal["online", "in-person", "hybrid"]

RESOURCE_DATABASE: dict[str, dict[str, list[dict[str, Any]]]] = {
    "javascript": {
        "beginner": [
            {
                "title": "JavaScript Basics Course",
                "provider": "freeCodeCamp",
                "type": "Interactive Course",
                "duration": "40 hours",
                "price": "Free",
                "rating": 4.8,
                "url": "https://www.freecodecamp.org/learn/javascript-algorithms-and-data-structures/",
                "description": "Comprehensive introduction to JavaScript programming",
            },
            {
                "title": "JavaScript.info Tutorial",
                "provider": "JavaScript.info",
                "type": "Documentation",
                "duration": "Self-paced",
                "price": "Free",
                "rating": 4.9,
                "url": "https://javascript.info/",
                "description": "Modern JavaScript tutorial with practical examples",
            },
        ],
        "intermediate": [
            {
                "title": "You Don't Know JS Book Series",
                "provider": "Kyle Simpson",
                "type": "Book",
                "duration": "60 hours",
                "price": "$30",
                "rating": 4.7,
                "description": "Deep dive into JavaScript mechanics and advanced concepts",
            },
        ],
    },
    "python": {
        "beginner": [
            {
                "title": "Python for Everybody",
                "provider": "University of Michigan",
                "type": "MOOC",
                "duration": "8 months",
                "price": "Free (Audit)",
                "rating": 4.8,
                "description": "Complete Python programming specialization",
            },
        ],
    },
    "data-science": {
        "beginner": [
            {
                "title": "Data Science Introduction",
                "provider": "Kaggle Learn",
                "type": "Micro-courses",
                "duration": "20 hours",
                "price": "Free",
                "rating": 4.6,
                "description": "Practical data science with Python and pandas",
            },
        ],
    },
}

BOOKS = {
    "javascript": [
        {
            "title": "Eloquent JavaScript",
            "author": "Marijn Haverbeke",
            "level": "beginner-intermediate",
            "price": "Free online",
            "description": "Modern introduction to programming and JavaScript",
        },
    ],
    "python": [
        {
            "title": "Automate the Boring Stuff with Python",
            "author": "Al Sweigart",
            "level": "beginner",
            "price": "Free online",
            "description": "Practical Python programming for everyday tasks",
        },
    ],
}

PROJECTS = {
    "javascript": {
        "beginner": [
            {"name": "Todo List App", "difficulty": "Easy", "time": "1 week"},
            {"name": "Calculator", "difficulty": "Easy", "time": "3 days"},
        ],
        "intermediate": [
            {"name": "Weather App with API", "difficulty": "Medium", "time": "2 weeks"},
            {"name": "E-commerce Site", "difficulty": "Medium-Hard", "time": "1 month"},
        ],
    },
}

TOOLS = {
    "javascript": [
        {"name": "VS Code", "type": "IDE", "price": "Free"},
        {"name": "Chrome DevTools", "type": "Debugging", "price": "Free"},
    ],
    "python": [
        {"name": "Jupyter Notebook", "type": "Environment", "price": "Free"},
        {"name": "PyCharm", "type": "IDE", "price": "Free Community"},
    ],
}

PLATFORMS = [
    {"name": "Coursera", "type": "MOOC", "strengths": ["University courses", "Certificates"]},
    {"name": "freeCodeCamp", "type": "Free", "strengths": ["Hands-on", "Community"]},
    {"name": "Udemy", "type": "Paid", "strengths": ["Variety", "Practical"]},
    {"name": "YouTube", "type": "Free", "strengths": ["Visual learning", "Variety"]},
]

TIMELINES = {
    "javascript": {
        "beginner": {"weeks": 8, "hoursPerWeek": 10, "total": "80 hours"},
        "intermediate": {"weeks": 12, "hoursPerWeek": 8, "total": "96 hours"},
        "advanced": {"weeks": 16, "hoursPerWeek": 6, "total": "96 hours"},
    },
}

ROLE_REQUIREMENTS = {
    "frontend-developer": [
        "HTML/CSS", "JavaScript", "React/Vue/Angular", "Git", "Responsive Design",
        "REST APIs", "Testing", "Web Performance", "Accessibility",
    ],
    "backend-developer": [
        "Programming Language (Python/Node.js/Java)", "Databases", "APIs", "Git",
        "Cloud Services", "Security", "Testing", "DevOps Basics",
    ],
    "data-scientist": [
        "Python/R", "Statistics", "Machine Learning", "SQL", "Data Visualization",
        "Pandas/NumPy", "Jupyter", "Git", "Business Understanding",
    ],
    "product-manager": [
        "Product Strategy", "User Research", "Analytics", "Roadmapping",
        "Communication", "Agile/Scrum", "Stakeholder Management", "Technical Understanding",
    ],
}

GENERIC_ROLE = ["Core Technical Skills", "Communication", "Problem Solving", "Industry Knowledge"]

# Missing skills mentioning these terms are learned first, in this order
SKILL_PRIORITY = ["javascript", "python", "react", "sql", "git"]

WEB_PATH = [
    {
        "title": "Foundation Skills",
        "description": "Master the basics of web development",
        "skills": ["HTML", "CSS", "JavaScript Basics"],
        "duration": "6 weeks",
        "type": "foundation",
        "deliverables": ["Static website", "CSS animations"],
    },
    {
        "title": "Interactive Development",
        "description": "Add interactivity with JavaScript",
        "skills": ["DOM Manipulation", "Event Handling", "APIs"],
        "duration": "4 weeks",
        "type": "skill-building",
        "prerequisites": ["Foundation Skills"],
        "deliverables": ["Interactive web app"],
    },
    {
        "title": "Modern Framework",
        "description": "Learn a modern JavaScript framework",
        "skills": ["React/Vue", "State Management", "Routing"],
        "duration": "6 weeks",
        "type": "advanced",
        "prerequisites": ["Interactive Development"],
        "deliverables": ["SPA application"],
    },
]

GENERIC_PATH = [
    {
        "title": "Foundation Phase",
        "description": "Build fundamental knowledge",
        "skills": ["Core concepts", "Basic tools"],
        "duration": "4 weeks",
        "type": "foundation",
        "deliverables": ["Basic project"],
    },
    {
        "title": "Practice Phase",
        "description": "Apply knowledge through practice",
        "skills": ["Practical application", "Real projects"],
        "duration": "6 weeks",
        "type": "practice",
        "deliverables": ["Portfolio project"],
    },
    {
        "title": "Mastery Phase",
        "description": "Develop advanced skills",
        "skills": ["Advanced concepts", "Best practices"],
        "duration": "8 weeks",
        "type": "mastery",
        "deliverables": ["Professional project"],
    },
]

HOURS_PER_WEEK = 10


# ---------------------------------------------------------------------------
# Parameter Models
# ---------------------------------------------------------------------------


class LearningResourceParams(TaskParams):
    skill: str = Field(min_length=1)
    level: Level = "beginner"
    budget: float | None = None
    format: Format | None = None


class SkillAssessmentParams(TaskParams):
    target_role: str = Field(min_length=1)
    current_skills: list[str]
    experience: str | None = None


class LearningPathParams(TaskParams):
    goal: str = Field(min_length=1)
    timeframe: str
    preferred_format: Format = "online"
    budget: float | None = None
    current_level: str | None = None


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class LearningAgent(BaseAgent):
    """Course discovery, skill-gap analysis and learning roadmaps."""

    agent_type = AgentType.LEARNING

    TASK_ALIASES = {
        "findCourses": "findLearningResources",
        "findCertifications": "findLearningResources",
        "assessSkillGap": "assessSkillGaps",
    }

    CAPABILITIES = [
        AgentCapability.from_model(
            "findLearningResources", "Find courses and learning materials",
            LearningResourceParams,
        ),
        AgentCapability.from_model(
            "assessSkillGaps", "Analyze skill requirements vs current skills",
            SkillAssessmentParams,
        ),
        AgentCapability.from_model(
            "createLearningPath", "Create personalized learning roadmap",
            LearningPathParams,
        ),
    ]

    def task_specs(self) -> dict[str, TaskSpec]:
        return {
            "findLearningResources": TaskSpec(
                self.find_learning_resources, LearningResourceParams, 0.85,
            ),
            "assessSkillGaps": TaskSpec(
                self.assess_skill_gaps, SkillAssessmentParams, 0.8,
            ),
            "createLearningPath": TaskSpec(
                self.create_learning_path, LearningPathParams, 0.9,
            ),
        }

    async def find_learning_resources(
        self, params: LearningResourceParams,
    ) -> dict[str, Any]:
        logger.info(
            "Finding learning resources for %s at %s level", params.skill, params.level,
        )
        cascade = RetrievalCascade(
            "findLearningResources",
            tiers=[
                ProviderTier(
                    "coursera",
                    lambda: self._coursera_resources(params),
                    enabled=self.keyless_enabled(),
                ),
            ],
            fallback=lambda: _resource_report(
                params, skill_resources(params.skill, params.level),
            ),
            fallback_source="curated resource database",
        )
        return (await cascade.run()).payload

    async def _coursera_resources(self, params: LearningResourceParams) -> dict[str, Any]:
        body = await get_json(
            self.http,
            COURSERA_URL,
            params={
                "q": "search",
                "query": params.skill,
                "fields": "name,slug,description,workload",
                "limit": 5,
            },
        )
        resources = [
            {
                "title": require(course, "name"),
                "provider": "Coursera",
                "type": "MOOC",
                "duration": course.get("workload") or "Self-paced",
                "price": "Free (Audit)",
                "url": f"https://www.coursera.org/learn/{course.get('slug', '')}",
                "description": (course.get("description") or "")[:300],
            }
            for course in require(body, "elements")
        ]
        if not resources:
            raise ProviderError(f"Coursera returned no courses for {params.skill!r}")

        payload = _resource_report(params, resources)
        payload["dataSource"] = "coursera"
        return payload

    async def assess_skill_gaps(self, params: SkillAssessmentParams) -> dict[str, Any]:
        logger.info("Assessing skill gaps for %s", params.target_role)
        required = role_requirements(params.target_role)
        gaps = analyze_skill_gaps(params.current_skills, required)
        missing = [gap for gap in gaps if gap["status"] == "missing"]

        return {
            "targetRole": params.target_role,
            "currentSkills": params.current_skills,
            "requiredSkills": required,
            "skillGaps": gaps,
            "priorities": prioritize_skills(missing),
            "readinessScore": readiness_score(params.current_skills, required),
            "recommendations": {
                "immediate": [
                    {
                        "skill": gap["skill"],
                        "reason": "Essential for role entry",
                        "timeline": "1-3 months",
                        "resources": skill_resources(gap["skill"], "beginner"),
                    }
                    for gap in missing[:3]
                ],
                "longTerm": [
                    {
                        "skill": gap["skill"],
                        "reason": "Important for career growth",
                        "timeline": "6-12 months",
                    }
                    for gap in missing[3:]
                ],
                "nextSteps": [
                    "Focus on top 3 priority skills first",
                    "Build portfolio projects demonstrating skills",
                    "Consider bootcamp or formal education",
                    "Join relevant professional communities",
                    "Seek mentorship or coaching",
                ],
            },
            "timeline": {
                "optimistic": f"{len(missing) * 2} months",
                "realistic": f"{len(missing) * 4} months",
                "conservative": f"{len(missing) * 6} months",
                "factors": [
                    "Current experience level",
                    "Time availability",
                    "Learning approach",
                    "Complexity of skills",
                    "Support system",
                ],
            },
            "assessmentDate": datetime.now(UTC).isoformat(),
        }

    async def create_learning_path(self, params: LearningPathParams) -> dict[str, Any]:
        logger.info("Creating learning path for goal: %s", params.goal)
        path = learning_path(params.goal)
        total_months = _timeframe_months(params.timeframe)
        today = datetime.now(UTC).date()
        months_per_phase = total_months / len(path)
        weeks_per_phase = math.ceil(total_months * 4 / len(path))

        milestones = [
            {
                "milestone": phase["phase"],
                "title": f"Complete {phase['title']}",
                "description": phase["description"],
                "targetDate": (
                    today + timedelta(days=round(phase["phase"] * months_per_phase * 30.44))
                ).isoformat(),
                "criteria": [
                    "Complete all learning materials",
                    "Finish practice exercises",
                    "Submit deliverable project",
                    "Pass knowledge assessment",
                ],
                "deliverables": phase["deliverables"],
            }
            for phase in path
        ]

        total_skills = sum(len(phase["skills"]) for phase in path)
        if total_skills > 15 or len(path) > 4:
            difficulty = "High"
        elif total_skills > 8 or len(path) > 3:
            difficulty = "Medium"
        else:
            difficulty = "Low"

        return {
            "goal": params.goal,
            "timeframe": params.timeframe,
            "preferredFormat": params.preferred_format,
            "budget": params.budget,
            "path": path,
            "milestones": milestones,
            "resources": [
                {
                    "phase": phase["phase"],
                    "resources": [
                        resource
                        for skill in phase["skills"]
                        for resource in skill_resources(skill, "beginner")
                    ],
                }
                for phase in path
            ],
            "estimatedHours": sum(
                _leading_int(phase["duration"], 4) * HOURS_PER_WEEK for phase in path
            ),
            "difficulty": difficulty,
            "schedule": {
                "totalDuration": f"{total_months} months",
                "weeklyHours": "8-12 hours",
                "schedule": "Part-time study (evenings and weekends)",
                "phases": [
                    {
                        "phase": phase["phase"],
                        "startWeek": index * weeks_per_phase + 1,
                        "duration": phase["duration"],
                    }
                    for index, phase in enumerate(path)
                ],
            },
            "successMetrics": [
                "Completion rate of assigned materials",
                "Quality of project deliverables",
                "Performance on practice exercises",
                "Active participation in community",
                "Portfolio development progress",
            ],
            "pathId": f"learning_path_{uuid.uuid4().hex[:12]}",
            "createdAt": datetime.now(UTC).isoformat(),
        }


# ---------------------------------------------------------------------------
# Pure Helpers
# ---------------------------------------------------------------------------

_LEADING_INT = re.compile(r"\s*(\d+)")
_NON_DIGITS = re.compile(r"\D")


def _slug(text: str) -> str:
    return re.sub(r"\s+", "-", text.lower())


def _leading_int(text: str, default: int) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else default


def _timeframe_months(timeframe: str) -> int:
    digits = _NON_DIGITS.sub("", timeframe)
    return int(digits) if digits and int(digits) > 0 else 6


def skill_resources(skill: str, level: str) -> list[dict[str, Any]]:
    found = RESOURCE_DATABASE.get(_slug(skill), {}).get(level)
    if found:
        return [dict(item) for item in found]
    return [
        {
            "title": f"{skill} {level} Course",
            "provider": "Various Providers",
            "type": "Mixed Content",
            "duration": "20-40 hours",
            "price": "Free - $100",
            "rating": 4.5,
            "description": f"Comprehensive {level} level {skill} learning resources",
        },
    ]


def _resource_report(
    params: LearningResourceParams, resources: list[dict[str, Any]],
) -> dict[str, Any]:
    key = params.skill.lower()
    return {
        "skill": params.skill,
        "level": params.level,
        "budget": params.budget,
        "resources": resources,
        "recommendations": {
            "courses": skill_resources(params.skill, params.level),
            "books": BOOKS.get(key, []),
            "practiceProjects": PROJECTS.get(key, {}).get(params.level) or [
                {
                    "name": f"{params.skill} Practice Project",
                    "difficulty": "Varies",
                    "time": "1-4 weeks",
                },
            ],
            "communities": [
                {"name": "Stack Overflow", "type": "Q&A", "url": "https://stackoverflow.com"},
                {
                    "name": "Reddit Communities",
                    "type": "Forum",
                    "url": f"https://reddit.com/r/{params.skill}",
                },
                {
                    "name": "Discord Servers",
                    "type": "Chat",
                    "description": "Real-time learning discussions",
                },
            ],
            "tools": TOOLS.get(key) or [
                {"name": "Generic Learning Tools", "type": "Various", "price": "Varies"},
            ],
        },
        "platforms": PLATFORMS,
        "timeline": TIMELINES.get(key, {}).get(params.level)
        or {"weeks": 10, "hoursPerWeek": 8, "total": "80 hours"},
        "searchDate": datetime.now(UTC).isoformat(),
    }


def role_requirements(role: str) -> list[str]:
    return list(ROLE_REQUIREMENTS.get(_slug(role), GENERIC_ROLE))


def _skill_match(current_skills: list[str], required: str) -> str | None:
    wanted = required.lower()
    for current in current_skills:
        have = current.lower()
        if wanted in have or have in wanted:
            return current
    return None


def analyze_skill_gaps(
    current_skills: list[str], required_skills: list[str],
) -> list[dict[str, Any]]:
    gaps = []
    for required in required_skills:
        matched = _skill_match(current_skills, required)
        gaps.append({
            "skill": required,
            "status": "present" if matched else "missing",
            "priority": "maintenance" if matched else "learn",
            "matchedWith": matched,
        })
    return gaps


def prioritize_skills(missing: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order missing skills by SKILL_PRIORITY, then rank high/medium/low."""

    def rank(gap: dict[str, Any]) -> int:
        skill = gap["skill"].lower()
        for index, term in enumerate(SKILL_PRIORITY):
            if term in skill:
                return index
        return len(SKILL_PRIORITY)

    ordered = sorted(missing, key=rank)
    return [
        {
            **gap,
            "priority": "high" if index < 3 else "medium" if index < 6 else "low",
            "order": index + 1,
        }
        for index, gap in enumerate(ordered)
    ]


def readiness_score(current_skills: list[str], required_skills: list[str]) -> int:
    if not required_skills:
        return 100
    matches = sum(1 for req in required_skills if _skill_match(current_skills, req))
    return round(matches / len(required_skills) * 100)


def learning_path(goal: str) -> list[dict[str, Any]]:
    lowered = goal.lower()
    template = WEB_PATH if "web develop" in lowered or "frontend" in lowered else GENERIC_PATH
    return [
        {
            "phase": index + 1,
            **step,
            "prerequisites": step.get("prerequisites", []),
        }
        for index, step in enumerate(template)
    ]
