# =============================================================================
# Financial Agent — Currency, Savings, Investments, Budgets
# =============================================================================
#
# PROVIDER LADDER (convertCurrency):
#   CurrencyAPI.net ──▶ ExchangeRate-API v6 ──▶ ExchangeRate-API open (keyless)
#                                                        │
#                                                        ▼
#                                              built-in mock rate table
#
# Live rates carry a 1.5% conversion fee and `rateType: "real-time"`.
# The mock table carries a 2% fee and `rateType: "fallback"`.
#
# Everything else (savings plan, investment options, budget optimisation,
# market tracking) is pure computation over the request parameters.
# =============================================================================

from __future__ import annotations

import logging
import math
import uuid
from datetime import UTC, date, datetime
from typing import Any, Literal

from pydantic import Field, field_validator

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

CURRENCYAPI_URL = "https://currencyapi.net/api/v1/rates"
EXCHANGERATE_V6_URL = "https://v6.exchangerate-api.com/v6/{key}/latest/{base}"
EXCHANGERATE_OPEN_URL = "https://api.exchangerate-api.com/v4/latest/{base}"

LIVE_FEE_PERCENT = 1.5
FALLBACK_FEE_PERCENT = 2.0

MOCK_RATES: dict[str, dict[str, float]] = {
    "USD": {"EUR": 0.85, "GBP": 0.73, "JPY": 110, "CAD": 1.25, "AUD": 1.35},
    "EUR": {"USD": 1.18, "GBP": 0.86, "JPY": 129, "CAD": 1.47, "AUD": 1.59},
    "GBP": {"USD": 1.37, "EUR": 1.16, "JPY": 151, "CAD": 1.71, "AUD": 1.85},
}

# Average days per month, used to turn a target date into a month count
DAYS_PER_MONTH = 30.44

INVESTMENT_OPTIONS: dict[str, list[dict[str, Any]]] = {
    "low": [
        {
            "type": "High-Yield Savings",
            "expectedReturn": 2.5,
            "risk": "Very Low",
            "liquidity": "High",
            "description": "FDIC insured savings account with competitive rates",
            "minInvestment": 0,
            "fees": 0,
        },
        {
            "type": "Treasury Bills",
            "expectedReturn": 3.0,
            "risk": "Very Low",
            "liquidity": "Medium",
            "description": "Government-backed short-term securities",
            "minInvestment": 100,
            "fees": 0,
        },
        {
            "type": "CDs (Certificate of Deposit)",
            "expectedReturn": 3.5,
            "risk": "Very Low",
            "liquidity": "Low",
            "description": "Fixed-term deposit with guaranteed return",
            "minInvestment": 500,
            "fees": 0,
        },
    ],
    "medium": [
        {
            "type": "Bond Index Funds",
            "expectedReturn": 4.5,
            "risk": "Low to Medium",
            "liquidity": "High",
            "description": "Diversified portfolio of government and corporate bonds",
            "minInvestment": 1000,
            "fees": 0.15,
        },
        {
            "type": "Balanced Mutual Funds",
            "expectedReturn": 6.0,
            "risk": "Medium",
            "liquidity": "High",
            "description": "Mix of stocks and bonds for balanced growth",
            "minInvestment": 1000,
            "fees": 0.75,
        },
        {
            "type": "Target-Date Funds",
            "expectedReturn": 6.5,
            "risk": "Medium",
            "liquidity": "High",
            "description": "Automatically adjusts allocation based on target date",
            "minInvestment": 1000,
            "fees": 0.50,
        },
    ],
    "high": [
        {
            "type": "Stock Index Funds",
            "expectedReturn": 8.0,
            "risk": "Medium to High",
            "liquidity": "High",
            "description": "Broad market exposure with long-term growth potential",
            "minInvestment": 1000,
            "fees": 0.20,
        },
        {
            "type": "Growth Stocks",
            "expectedReturn": 10.0,
            "risk": "High",
            "liquidity": "High",
            "description": "Individual stocks with high growth potential",
            "minInvestment": 100,
            "fees": 0,
        },
        {
            "type": "REITs",
            "expectedReturn": 7.5,
            "risk": "Medium to High",
            "liquidity": "Medium",
            "description": "Real Estate Investment Trusts for property exposure",
            "minInvestment": 1000,
            "fees": 0.60,
        },
    ],
}


# ---------------------------------------------------------------------------
# Parameter Models
# ---------------------------------------------------------------------------


class SavingsPlanParams(TaskParams):
    goal_amount: float = Field(gt=0)
    current_savings: float = 0
    target_date: date
    monthly_income: float = Field(gt=0)
    monthly_expenses: float = Field(ge=0)
    currency: str = "USD"


class CurrencyConversionParams(TaskParams):
    amount: float = Field(ge=0)
    from_currency: str = Field(min_length=3, max_length=3)
    to_currency: str = Field(min_length=3, max_length=3)
    on_date: str | None = Field(default=None, alias="date")

    @field_validator("from_currency", "to_currency")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


class InvestmentAnalysisParams(TaskParams):
    amount: float = Field(ge=0)
    time_horizon: float = Field(gt=0, description="Months")
    risk_tolerance: Literal["low", "medium", "high"]
    goal_type: str
    currency: str = "USD"


class BudgetOptimizationParams(TaskParams):
    monthly_income: float = Field(gt=0)
    expenses: dict[str, float]
    savings_goal: float = Field(ge=0)
    currency: str = "USD"


class MarketTrackingParams(TaskParams):
    assets: list[str] = Field(min_length=1)
    alert_threshold: float = 5
    frequency: str = "daily"


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class FinancialAgent(BaseAgent):
    """Currency conversion plus savings, investment and budget analysis."""

    agent_type = AgentType.FINANCIAL

    TASK_ALIASES = {"budgetOptimization": "optimizeBudget"}

    CAPABILITIES = [
        AgentCapability.from_model(
            "calculateSavingsPlan",
            "Create a detailed savings plan to reach financial goals",
            SavingsPlanParams,
        ),
        AgentCapability.from_model(
            "convertCurrency",
            "Convert between different currencies with real-time rates",
            CurrencyConversionParams,
        ),
        AgentCapability.from_model(
            "analyzeInvestmentOptions",
            "Analyze investment options based on risk tolerance and time horizon",
            InvestmentAnalysisParams,
        ),
        AgentCapability.from_model(
            "optimizeBudget",
            "Analyze spending patterns and suggest budget optimizations",
            BudgetOptimizationParams,
        ),
        AgentCapability.from_model(
            "trackMarketTrends",
            "Monitor market conditions affecting financial goals",
            MarketTrackingParams,
        ),
    ]

    def task_specs(self) -> dict[str, TaskSpec]:
        return {
            "calculateSavingsPlan": TaskSpec(
                self.calculate_savings_plan, SavingsPlanParams, 0.9,
            ),
            "convertCurrency": TaskSpec(
                self.convert_currency, CurrencyConversionParams, 0.95,
            ),
            # Advisory output
            "analyzeInvestmentOptions": TaskSpec(
                self.analyze_investment_options, InvestmentAnalysisParams, 0.75,
            ),
            "optimizeBudget": TaskSpec(
                self.optimize_budget, BudgetOptimizationParams, 0.8,
            ),
            "trackMarketTrends": TaskSpec(
                self.setup_market_tracking, MarketTrackingParams, 1.0,
            ),
        }

    # -----------------------------------------------------------------------
    # Currency Conversion
    # -----------------------------------------------------------------------

    async def convert_currency(self, params: CurrencyConversionParams) -> dict[str, Any]:
        logger.info(
            "Converting %s %s to %s", params.amount, params.from_currency, params.to_currency,
        )
        currencyapi_key = self.credential_value("currencyapi")
        exchangerate_key = self.credential_value("exchangerate")

        cascade = RetrievalCascade(
            "convertCurrency",
            tiers=[
                ProviderTier(
                    "currencyapi",
                    lambda: self._currencyapi(params, currencyapi_key),
                    enabled=currencyapi_key is not None,
                ),
                ProviderTier(
                    "exchangerate-api",
                    lambda: self._exchangerate_v6(params, exchangerate_key),
                    enabled=exchangerate_key is not None,
                ),
                ProviderTier(
                    "exchangerate-api-open",
                    lambda: self._exchangerate_open(params),
                    enabled=self.keyless_enabled(),
                ),
            ],
            fallback=lambda: _mock_conversion(params),
            fallback_source="mock exchange rates",
        )
        return (await cascade.run()).payload

    async def _currencyapi(
        self, params: CurrencyConversionParams, api_key: str | None,
    ) -> dict[str, Any]:
        body = await get_json(
            self.http,
            CURRENCYAPI_URL,
            params={"base": params.from_currency, "output": "json", "key": api_key},
        )
        if not body.get("valid"):
            raise ProviderError("CurrencyAPI.net reported an invalid response")
        rate = float(require(body, "rates", params.to_currency))

        updated = body.get("updated")
        last_updated = (
            datetime.fromtimestamp(int(updated), UTC).isoformat() if updated else None
        )
        return _live_conversion(params, rate, "CurrencyAPI.net", last_updated)

    async def _exchangerate_v6(
        self, params: CurrencyConversionParams, api_key: str | None,
    ) -> dict[str, Any]:
        body = await get_json(
            self.http,
            EXCHANGERATE_V6_URL.format(key=api_key, base=params.from_currency),
        )
        if body.get("result") != "success":
            raise ProviderError(f"ExchangeRate-API error: {body.get('error-type', 'unknown')}")
        rate = float(require(body, "conversion_rates", params.to_currency))
        return _live_conversion(
            params, rate, "ExchangeRate-API v6", body.get("time_last_update_utc"),
        )

    async def _exchangerate_open(self, params: CurrencyConversionParams) -> dict[str, Any]:
        body = await get_json(
            self.http, EXCHANGERATE_OPEN_URL.format(base=params.from_currency),
        )
        rate = float(require(body, "rates", params.to_currency))
        payload = _live_conversion(
            params, rate, "ExchangeRate-API (open)", body.get("time_last_update_utc"),
        )
        payload["attribution"] = "Rates By Exchange Rate API"
        return payload

    # -----------------------------------------------------------------------
    # Savings Plan
    # -----------------------------------------------------------------------

    async def calculate_savings_plan(self, params: SavingsPlanParams) -> dict[str, Any]:
        logger.info(
            "Calculating savings plan for goal amount %s %s",
            params.goal_amount, params.currency,
        )
        days_left = (params.target_date - datetime.now(UTC).date()).days
        months_to_goal = max(1, math.ceil(days_left / DAYS_PER_MONTH))

        amount_needed = params.goal_amount - params.current_savings
        disposable = params.monthly_income - params.monthly_expenses
        required_monthly = amount_needed / months_to_goal
        savings_rate = required_monthly / params.monthly_income * 100

        scenarios = {
            "current": {
                "monthlyAmount": required_monthly,
                "timeToGoal": months_to_goal,
                "feasible": disposable >= required_monthly,
                "savingsRate": savings_rate,
            },
            "conservative": _scenario(amount_needed, disposable * 0.5, params.monthly_income),
            "aggressive": _scenario(amount_needed, disposable * 0.8, params.monthly_income),
        }

        recommendations = []
        if savings_rate > 50:
            recommendations.append(
                "Consider extending your timeline or reducing the goal amount"
            )
        if savings_rate < 10:
            recommendations.append("You could potentially increase your monthly savings")
        if disposable < required_monthly:
            recommendations.append(
                "Consider reducing monthly expenses or increasing income"
            )
        recommendations += [
            "Set up automatic transfers to a high-yield savings account",
            "Track your progress monthly and adjust as needed",
            "Consider the 50/30/20 budgeting rule",
        ]

        return {
            "goalAmount": params.goal_amount,
            "currentSavings": params.current_savings,
            "amountNeeded": amount_needed,
            "targetDate": params.target_date.isoformat(),
            "monthsToGoal": months_to_goal,
            "currency": params.currency,
            "monthlyDisposableIncome": disposable,
            "scenarios": scenarios,
            "recommendations": recommendations,
            "milestones": savings_milestones(
                params.current_savings, params.goal_amount, months_to_goal,
            ),
        }

    # -----------------------------------------------------------------------
    # Investment Options
    # -----------------------------------------------------------------------

    async def analyze_investment_options(
        self, params: InvestmentAnalysisParams,
    ) -> dict[str, Any]:
        logger.info(
            "Analyzing investment options for %s %s", params.amount, params.currency,
        )
        years = params.time_horizon / 12

        suitable = []
        for option in INVESTMENT_OPTIONS[params.risk_tolerance]:
            if params.amount < option["minInvestment"]:
                continue
            future_value = params.amount * (1 + option["expectedReturn"] / 100) ** years
            suitable.append({
                **option,
                "projectedValue": future_value,
                "totalReturn": future_value - params.amount,
                "annualizedReturn": option["expectedReturn"],
            })

        diversify = params.amount > 10000
        return {
            "amount": params.amount,
            "timeHorizon": params.time_horizon,
            "riskTolerance": params.risk_tolerance,
            "goalType": params.goal_type,
            "currency": params.currency,
            "suitableOptions": suitable,
            "diversificationAdvice": {
                "recommended": diversify,
                "strategy": (
                    "Consider spreading investments across 3-4 different asset classes"
                    if diversify
                    else "Start with a single, well-diversified index fund"
                ),
            },
            "taxConsiderations": [
                "Consider tax-advantaged accounts (401k, IRA)",
                "Understand capital gains tax implications",
                "Look into tax-efficient index funds",
            ],
            "riskWarnings": [
                "Past performance does not guarantee future results",
                "All investments carry risk of loss",
                "Consider your risk tolerance and time horizon",
                "Diversification does not guarantee profit or protect against loss",
            ],
            "nextSteps": [
                "Review your emergency fund first",
                "Consider consulting with a financial advisor",
                "Start with small amounts to test your comfort level",
                "Set up automatic investing for dollar-cost averaging",
            ],
        }

    # -----------------------------------------------------------------------
    # Budget Optimisation
    # -----------------------------------------------------------------------

    async def optimize_budget(self, params: BudgetOptimizationParams) -> dict[str, Any]:
        logger.info("Analyzing budget for optimization opportunities")
        income = params.monthly_income
        expenses = params.expenses

        total_expenses = sum(expenses.values())
        current_savings = income - total_expenses
        current_rate = current_savings / income * 100
        target_rate = params.savings_goal / income * 100
        shortfall = params.savings_goal - current_savings

        breakdown = [
            _analyze_expense(category, amount, income)
            for category, amount in expenses.items()
        ]

        immediate = []
        if shortfall > 0:
            immediate.append(
                f"Find ways to cut {shortfall:.2f} {params.currency} from monthly expenses"
            )
        if current_rate < 20:
            immediate.append("Try to save at least 20% of your income")
        immediate += [
            "Track expenses for a month to identify spending patterns",
            "Use the 50/30/20 rule: 50% needs, 30% wants, 20% savings",
        ]

        housing = expenses.get("housing") or expenses.get("rent") or 0
        food = expenses.get("food") or expenses.get("groceries") or 0

        return {
            "income": income,
            "totalExpenses": total_expenses,
            "currentSavings": current_savings,
            "currentSavingsRate": current_rate,
            "targetSavingsGoal": params.savings_goal,
            "targetSavingsRate": target_rate,
            "shortfall": max(0, shortfall),
            "currency": params.currency,
            "expenseBreakdown": breakdown,
            "potentialSavings": sum(item["potentialSavings"] for item in breakdown),
            "budgetHealthScore": budget_health_score(income, total_expenses, expenses),
            "recommendations": {
                "immediate": immediate,
                "longTerm": [
                    "Build an emergency fund of 3-6 months expenses",
                    "Increase income through skills development or side hustles",
                    "Automate savings to make it easier",
                    "Review and adjust budget quarterly",
                ],
            },
            "categories": {
                "housing": min(30, housing / income * 100),
                "transportation": min(15, expenses.get("transportation", 0) / income * 100),
                "food": min(15, food / income * 100),
                "savings": max(20, target_rate),
            },
        }

    async def setup_market_tracking(self, params: MarketTrackingParams) -> dict[str, Any]:
        logger.info("Setting up market tracking for assets: %s", ", ".join(params.assets))
        return {
            "trackingId": f"market_{uuid.uuid4().hex[:12]}",
            "assets": params.assets,
            "alertThreshold": params.alert_threshold,
            "frequency": params.frequency,
            "trackingMetrics": [
                "Price changes",
                "Volume changes",
                "Market volatility",
                "Economic indicators",
            ],
            "alertTypes": [
                "Price threshold breach",
                "Significant volume changes",
                "Market volatility spikes",
                "Economic news impact",
            ],
            "status": "active",
            "created": datetime.now(UTC).isoformat(),
        }


# ---------------------------------------------------------------------------
# Pure Helpers
# ---------------------------------------------------------------------------


def mock_rate(from_currency: str, to_currency: str) -> float:
    """Resolve a rate from MOCK_RATES: direct, inverse, then via USD."""
    if from_currency == to_currency:
        return 1.0

    direct = MOCK_RATES.get(from_currency, {}).get(to_currency)
    if direct:
        return direct

    inverse = MOCK_RATES.get(to_currency, {}).get(from_currency)
    if inverse:
        return 1 / inverse

    to_usd = MOCK_RATES.get(from_currency, {}).get("USD", 1)
    from_usd = MOCK_RATES.get(to_currency, {}).get("USD", 1)
    return to_usd / from_usd


def _conversion(
    params: CurrencyConversionParams, rate: float, fee_percent: float,
) -> dict[str, Any]:
    converted = params.amount * rate
    fee = converted * fee_percent / 100
    return {
        "originalAmount": params.amount,
        "fromCurrency": params.from_currency,
        "toCurrency": params.to_currency,
        "exchangeRate": rate,
        "convertedAmount": converted,
        "fee": {
            "amount": round(fee, 2),
            "percentage": fee_percent,
            "currency": params.to_currency,
        },
        "finalAmount": round(converted - fee, 2),
        "date": datetime.now(UTC).isoformat(),
    }


def _live_conversion(
    params: CurrencyConversionParams,
    rate: float,
    provider: str,
    last_updated: str | None,
) -> dict[str, Any]:
    if rate <= 0:
        raise ProviderError(f"{provider} returned a non-positive rate")
    payload = _conversion(params, rate, LIVE_FEE_PERCENT)
    payload.update({
        "lastUpdated": last_updated or payload["date"],
        "rateType": "real-time",
        "provider": provider,
        "dataSource": provider,
    })
    return payload


def _mock_conversion(params: CurrencyConversionParams) -> dict[str, Any]:
    payload = _conversion(
        params, mock_rate(params.from_currency, params.to_currency), FALLBACK_FEE_PERCENT,
    )
    payload.update({"rateType": "fallback", "provider": "Mock Exchange Service"})
    return payload


def _scenario(amount_needed: float, monthly: float, income: float) -> dict[str, Any]:
    return {
        "monthlyAmount": monthly,
        "timeToGoal": math.ceil(amount_needed / monthly) if monthly > 0 else None,
        "feasible": monthly > 0,
        "savingsRate": monthly / income * 100,
    }


def savings_milestones(
    current_savings: float, goal_amount: float, months_to_goal: int,
) -> list[dict[str, Any]]:
    """Monthly checkpoints for the first year (or until the goal month)."""
    monthly_target = (goal_amount - current_savings) / months_to_goal
    milestones = []
    for month in range(1, min(12, months_to_goal) + 1):
        target = current_savings + monthly_target * month
        percentage = target / goal_amount * 100
        milestones.append({
            "month": month,
            "targetAmount": round(target),
            "percentage": round(percentage),
            "description": f"{percentage:.0f}% of goal reached",
        })
    return milestones


# category -> (share of income above which we comment, savings fraction, advice)
_EXPENSE_RULES: dict[str, tuple[float, float, str]] = {
    "food": (
        15, 0.20,
        "Food costs are high. Try meal planning, bulk buying, and cooking at home more.",
    ),
    "transportation": (
        15, 0.15,
        "Consider carpooling, public transport, or a more fuel-efficient vehicle.",
    ),
    "entertainment": (
        10, 0.30, "Look for free activities and limit expensive entertainment.",
    ),
    "subscriptions": (0, 0.40, "Review and cancel unused subscriptions."),
}
_EXPENSE_RULES["groceries"] = _EXPENSE_RULES["food"]


def _analyze_expense(category: str, amount: float, income: float) -> dict[str, Any]:
    percentage = amount / income * 100
    key = category.lower()
    recommendation = ""
    potential = 0.0

    if key in ("housing", "rent"):
        if percentage > 30:
            recommendation = (
                "Housing costs exceed recommended 30% of income. "
                "Consider downsizing or finding roommates."
            )
            potential = amount - income * 0.30
    elif key in _EXPENSE_RULES:
        threshold, fraction, advice = _EXPENSE_RULES[key]
        if key == "subscriptions" or percentage > threshold:
            recommendation = advice
            potential = amount * fraction

    return {
        "category": category,
        "amount": amount,
        "percentage": percentage,
        "recommendation": recommendation,
        "potentialSavings": max(0.0, potential),
    }


def budget_health_score(
    income: float, total_expenses: float, expenses: dict[str, float],
) -> int:
    """Score 0-100; points are lost for low savings, high housing and debt."""
    score = 100
    savings_rate = (income - total_expenses) / income * 100
    if savings_rate < 10:
        score -= 30
    elif savings_rate < 20:
        score -= 15

    housing = expenses.get("housing") or expenses.get("rent") or 0
    if housing / income > 0.30:
        score -= 20

    debt = expenses.get("debt") or expenses.get("loans") or 0
    if debt / income > 0.20:
        score -= 15

    return max(0, min(100, score))
