# =============================================================================
# Travel Agent — Flights, Hotels, Visas, Trip Budgets
# =============================================================================
#
# PROVIDER LADDERS:
#   searchFlights          Amadeus ──▶ Kiwi.com (RapidAPI) ──▶ mock offers
#   searchHotels           TripAdvisor ──▶ mock hotels
#   checkVisaRequirements  Visa Requirements (RapidAPI) ──▶ rule table
#
# calculateTravelBudget and monitorPrices are pure computations.
#
# CREDENTIALS:
#   "amadeus"      value is "client_id:client_secret" (OAuth client-credentials)
#   "tripadvisor"  content API key
#   "rapidapi"     shared RapidAPI key (settings.rapidapi_key as fallback)
# =============================================================================

from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import UTC, date, datetime
from typing import Any, Literal

from pydantic import Field, model_validator

from dreamplan.agents.base import BaseAgent, TaskParams, TaskSpec
from dreamplan.agents.cascade import (
    ProviderError,
    ProviderTier,
    RetrievalCascade,
    get_json,
    post_form,
    require,
)
from dreamplan.agents.types import AgentCapability, AgentType

logger = logging.getLogger(__name__)

AMADEUS_TOKEN_URL = "https://api.amadeus.com/v1/security/oauth2/token"
AMADEUS_OFFERS_URL = "https://api.amadeus.com/v2/shopping/flight-offers"
KIWI_HOST = "kiwi-com-cheap-flights.p.rapidapi.com"
TRIPADVISOR_SEARCH_URL = "https://api.content.tripadvisor.com/api/v1/location/search"
VISA_HOST = "visa-requirements4.p.rapidapi.com"

VISA_FREE_DESTINATIONS = frozenset({"US", "CA", "GB", "FR", "DE", "JP", "AU"})

DAILY_BUDGETS: dict[str, dict[str, int]] = {
    "budget": {
        "accommodation": 30,
        "food": 20,
        "transport": 10,
        "activities": 15,
        "miscellaneous": 10,
    },
    "mid-range": {
        "accommodation": 80,
        "food": 50,
        "transport": 25,
        "activities": 40,
        "miscellaneous": 20,
    },
    "luxury": {
        "accommodation": 200,
        "food": 120,
        "transport": 60,
        "activities": 100,
        "miscellaneous": 50,
    },
}

FLIGHT_COST_BY_STYLE = {"budget": 400, "mid-range": 700, "luxury": 1200}


# ---------------------------------------------------------------------------
# Parameter Models
# ---------------------------------------------------------------------------


class FlightSearchParams(TaskParams):
    origin: str = Field(min_length=2)
    destination: str = Field(min_length=2)
    departure_date: date
    return_date: date | None = None
    passengers: int = Field(default=1, ge=1)
    currency: str = "USD"


class HotelSearchParams(TaskParams):
    destination: str = Field(min_length=1)
    check_in: date
    check_out: date
    guests: int = Field(default=1, ge=1)
    currency: str = "USD"

    @model_validator(mode="after")
    def _check_out_after_check_in(self) -> HotelSearchParams:
        if self.check_out < self.check_in:
            raise ValueError("checkOut must not be before checkIn")
        return self


class VisaCheckParams(TaskParams):
    from_country: str
    to_country: str
    nationality: str
    purpose_of_travel: str = "tourism"


class TravelBudgetParams(TaskParams):
    destination: str
    duration: int = Field(ge=1)
    travel_style: Literal["budget", "mid-range", "luxury"] = "mid-range"
    currency: str = "USD"


class PriceMonitorParams(TaskParams):
    kind: Literal["flight", "hotel"] = Field(alias="type")
    search_params: dict[str, Any]
    threshold: float | None = None


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class TravelAgent(BaseAgent):
    """Flight, hotel and visa lookups plus trip budget estimates."""

    agent_type = AgentType.TRAVEL

    CAPABILITIES = [
        AgentCapability.from_model(
            "searchFlights", "Search for flight prices and schedules", FlightSearchParams,
        ),
        AgentCapability.from_model(
            "searchHotels", "Find accommodation options and prices", HotelSearchParams,
        ),
        AgentCapability.from_model(
            "checkVisaRequirements", "Check visa requirements and processing times",
            VisaCheckParams,
        ),
        AgentCapability.from_model(
            "calculateTravelBudget", "Estimate comprehensive travel budget",
            TravelBudgetParams,
        ),
        AgentCapability.from_model(
            "monitorPrices", "Set up price monitoring for flights and hotels",
            PriceMonitorParams,
        ),
    ]

    def task_specs(self) -> dict[str, TaskSpec]:
        return {
            "searchFlights": TaskSpec(self.search_flights, FlightSearchParams, 0.9),
            "searchHotels": TaskSpec(self.search_hotels, HotelSearchParams, 0.9),
            "checkVisaRequirements": TaskSpec(
                self.check_visa_requirements, VisaCheckParams, 0.85,
            ),
            # Estimate only, hence the lower confidence
            "calculateTravelBudget": TaskSpec(
                self.calculate_travel_budget, TravelBudgetParams, 0.75,
            ),
            "monitorPrices": TaskSpec(self.setup_price_monitoring, PriceMonitorParams, 1.0),
        }

    # -----------------------------------------------------------------------
    # Flights
    # -----------------------------------------------------------------------

    async def search_flights(self, params: FlightSearchParams) -> dict[str, Any]:
        logger.info("Searching flights from %s to %s", params.origin, params.destination)
        rapidapi_key = self.rapidapi_key()

        cascade = RetrievalCascade(
            "searchFlights",
            tiers=[
                ProviderTier(
                    "amadeus",
                    lambda: self._amadeus_flights(params),
                    enabled=self.credential_value("amadeus") is not None,
                ),
                ProviderTier(
                    "kiwi",
                    lambda: self._kiwi_flights(params, rapidapi_key),
                    enabled=rapidapi_key is not None,
                ),
            ],
            fallback=lambda: self._flight_summary(params, _mock_flights(params)),
            fallback_source="mock flight offers",
        )
        return (await cascade.run()).payload

    async def _amadeus_flights(self, params: FlightSearchParams) -> dict[str, Any]:
        client_id, _, client_secret = (self.credential_value("amadeus") or "").partition(":")
        if not client_id or not client_secret:
            raise ProviderError("Amadeus credential must be 'client_id:client_secret'")

        token_body = await post_form(
            self.http,
            AMADEUS_TOKEN_URL,
            {
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        token = require(token_body, "access_token")

        query: dict[str, Any] = {
            "originLocationCode": params.origin,
            "destinationLocationCode": params.destination,
            "departureDate": params.departure_date.isoformat(),
            "adults": params.passengers,
            "currencyCode": params.currency,
            "max": 5,
        }
        if params.return_date:
            query["returnDate"] = params.return_date.isoformat()

        body = await get_json(
            self.http,
            AMADEUS_OFFERS_URL,
            params=query,
            headers={"Authorization": f"Bearer {token}"},
        )
        flights = [_amadeus_offer(offer, params) for offer in require(body, "data")]
        if not flights:
            raise ProviderError("Amadeus returned no offers")

        payload = self._flight_summary(params, flights)
        payload["dataSource"] = "amadeus"
        return payload

    async def _kiwi_flights(
        self, params: FlightSearchParams, rapidapi_key: str | None,
    ) -> dict[str, Any]:
        route = "round-trip" if params.return_date else "one-way"
        body = await get_json(
            self.http,
            f"https://{KIWI_HOST}/{route}",
            params={
                "source": f"Airport:{params.origin}",
                "destination": f"Airport:{params.destination}",
                "currency": params.currency.lower(),
                "locale": "en",
                "adults": params.passengers,
                "limit": 5,
            },
            headers=_rapidapi_headers(rapidapi_key, KIWI_HOST),
        )
        flights = [_kiwi_itinerary(item, params) for item in require(body, "itineraries")]
        if not flights:
            raise ProviderError("Kiwi returned no itineraries")

        payload = self._flight_summary(params, flights)
        payload["dataSource"] = "kiwi"
        return payload

    @staticmethod
    def _flight_summary(
        params: FlightSearchParams, flights: list[dict[str, Any]],
    ) -> dict[str, Any]:
        prices = [f["price"]["amount"] for f in flights]
        return {
            "searchParams": params.to_wire(),
            "flights": flights,
            "searchDate": datetime.now(UTC).isoformat(),
            "totalResults": len(flights),
            "cheapestPrice": min(prices),
            "averagePrice": sum(prices) / len(prices),
        }

    # -----------------------------------------------------------------------
    # Hotels
    # -----------------------------------------------------------------------

    async def search_hotels(self, params: HotelSearchParams) -> dict[str, Any]:
        logger.info("Searching hotels in %s", params.destination)
        api_key = self.credential_value("tripadvisor")

        cascade = RetrievalCascade(
            "searchHotels",
            tiers=[
                ProviderTier(
                    "tripadvisor",
                    lambda: self._tripadvisor_hotels(params, api_key),
                    enabled=api_key is not None,
                ),
            ],
            fallback=lambda: _hotel_summary(params, _mock_hotels(params)),
            fallback_source="mock hotel listings",
        )
        return (await cascade.run()).payload

    async def _tripadvisor_hotels(
        self, params: HotelSearchParams, api_key: str | None,
    ) -> dict[str, Any]:
        body = await get_json(
            self.http,
            TRIPADVISOR_SEARCH_URL,
            params={
                "key": api_key,
                "searchQuery": params.destination,
                "category": "hotels",
                "language": "en",
            },
        )
        hotels = [
            {
                "name": require(item, "name"),
                "locationId": require(item, "location_id"),
                "address": (item.get("address_obj") or {}).get("address_string", ""),
                "price": None,
            }
            for item in require(body, "data")
        ]
        if not hotels:
            raise ProviderError("TripAdvisor returned no hotels")

        payload = _hotel_summary(params, hotels)
        payload["dataSource"] = "tripadvisor"
        return payload

    # -----------------------------------------------------------------------
    # Visas
    # -----------------------------------------------------------------------

    async def check_visa_requirements(self, params: VisaCheckParams) -> dict[str, Any]:
        logger.info(
            "Checking visa requirements for %s travelling from %s to %s",
            params.nationality, params.from_country, params.to_country,
        )
        rapidapi_key = self.rapidapi_key()

        cascade = RetrievalCascade(
            "checkVisaRequirements",
            tiers=[
                ProviderTier(
                    "visa-requirements",
                    lambda: self._visa_api(params, rapidapi_key),
                    enabled=rapidapi_key is not None,
                ),
            ],
            fallback=lambda: _visa_rules(params),
            fallback_source="visa rule table",
        )
        return (await cascade.run()).payload

    async def _visa_api(
        self, params: VisaCheckParams, rapidapi_key: str | None,
    ) -> dict[str, Any]:
        body = await get_json(
            self.http,
            f"https://{VISA_HOST}/visa-requirements",
            params={"from": params.nationality, "to": params.to_country},
            headers=_rapidapi_headers(rapidapi_key, VISA_HOST),
        )
        if not isinstance(body, dict):
            raise ProviderError("Unexpected visa response shape")

        requirement = str(
            body.get("visa_requirement") or body.get("requirement") or require(body, "status")
        )
        lowered = requirement.lower()
        required = not ("free" in lowered or "not required" in lowered)
        return {
            "required": required,
            "type": requirement,
            "maxStay": body.get("max_stay") or body.get("duration") or "Varies",
            "requirements": body.get("documents") or [],
            "processingTime": body.get("processing_time") or "Varies",
            "notes": body.get("notes"),
            "dataSource": "visa-requirements",
        }

    # -----------------------------------------------------------------------
    # Pure computations
    # -----------------------------------------------------------------------

    async def calculate_travel_budget(self, params: TravelBudgetParams) -> dict[str, Any]:
        logger.info(
            "Calculating travel budget for %s, %d days", params.destination, params.duration,
        )
        daily = DAILY_BUDGETS[params.travel_style]
        total_daily = sum(daily.values())
        trip_total = total_daily * params.duration

        one_time = {
            "flights": FLIGHT_COST_BY_STYLE[params.travel_style],
            "visa": 60,
            "insurance": 50,
            "vaccinations": 100,
        }
        one_time_total = sum(one_time.values())
        grand_total = trip_total + one_time_total

        recommendations = [
            "Book flights 2-3 months in advance for better prices",
            "Consider traveling during shoulder season for savings",
            "Look into travel rewards credit cards",
            "Set up automatic savings transfers",
        ]
        if params.travel_style == "luxury":
            recommendations.append("Consider mixing budget and luxury experiences")

        return {
            "destination": params.destination,
            "duration": params.duration,
            "travelStyle": params.travel_style,
            "currency": params.currency,
            "breakdown": {
                "daily": {**daily, "total": total_daily},
                "trip": {
                    **{k: v * params.duration for k, v in daily.items()},
                    "total": trip_total,
                },
                "oneTime": one_time,
            },
            "totals": {
                "dailyAverage": total_daily,
                "tripTotal": trip_total,
                "oneTimeTotal": one_time_total,
                "grandTotal": grand_total,
            },
            "savings": {
                # Six months to save, 26 weeks
                "monthlyTarget": math.ceil(grand_total / 6),
                "weeklyTarget": math.ceil(grand_total / 26),
            },
            "recommendations": recommendations,
        }

    async def setup_price_monitoring(self, params: PriceMonitorParams) -> dict[str, Any]:
        logger.info("Setting up price monitoring for %s", params.kind)
        return {
            "monitoringId": f"monitor_{uuid.uuid4().hex[:12]}",
            "type": params.kind,
            "parameters": params.search_params,
            "threshold": params.threshold,
            "frequency": "daily",
            "alertMethods": ["email", "push"],
            "created": datetime.now(UTC).isoformat(),
            "status": "active",
        }


# ---------------------------------------------------------------------------
# Response Mapping
# ---------------------------------------------------------------------------

_ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?")


def _rapidapi_headers(key: str | None, host: str) -> dict[str, str]:
    return {"X-RapidAPI-Key": key or "", "X-RapidAPI-Host": host}


def _format_duration(hours: int, minutes: int) -> str:
    return f"{hours}h {minutes}m"


def _amadeus_offer(offer: dict[str, Any], params: FlightSearchParams) -> dict[str, Any]:
    itinerary = require(offer, "itineraries", 0)
    segments = require(itinerary, "segments")
    first, last = segments[0], segments[-1]

    match = _ISO_DURATION.fullmatch(itinerary.get("duration", ""))
    duration = (
        _format_duration(int(match.group(1) or 0), int(match.group(2) or 0))
        if match else itinerary.get("duration", "")
    )

    return {
        "airline": require(first, "carrierCode"),
        "flightNumber": f"{first['carrierCode']}{first.get('number', '')}",
        "departure": {
            "airport": require(first, "departure", "iataCode"),
            "time": require(first, "departure", "at"),
        },
        "arrival": {
            "airport": require(last, "arrival", "iataCode"),
            "time": require(last, "arrival", "at"),
        },
        "price": {
            "amount": float(require(offer, "price", "total")),
            "currency": offer["price"].get("currency", params.currency),
        },
        "duration": duration,
        "stops": len(segments) - 1,
        "class": "Economy",
    }


def _kiwi_itinerary(item: dict[str, Any], params: FlightSearchParams) -> dict[str, Any]:
    segments = require(item, "sector", "sectorSegments")
    first = require(segments, 0, "segment")
    last = require(segments, len(segments) - 1, "segment")
    seconds = int(item["sector"].get("duration") or 0)

    return {
        "airline": require(first, "carrier", "name"),
        "flightNumber": f"{first['carrier'].get('code', '')}{first.get('code', '')}",
        "departure": {
            "airport": require(first, "source", "station", "code"),
            "time": require(first, "source", "localTime"),
        },
        "arrival": {
            "airport": require(last, "destination", "station", "code"),
            "time": require(last, "destination", "localTime"),
        },
        "price": {
            "amount": float(require(item, "price", "amount")),
            "currency": params.currency,
        },
        "duration": _format_duration(seconds // 3600, (seconds % 3600) // 60),
        "stops": len(segments) - 1,
        "class": "Economy",
    }


# ---------------------------------------------------------------------------
# Synthetic Data
# ---------------------------------------------------------------------------


def _mock_flights(params: FlightSearchParams) -> list[dict[str, Any]]:
    day = params.departure_date.isoformat()
    return [
        {
            "airline": "American Airlines",
            "flightNumber": "AA123",
            "departure": {"airport": params.origin, "time": f"{day}T08:00:00Z"},
            "arrival": {"airport": params.destination, "time": f"{day}T14:30:00Z"},
            "price": {"amount": 750, "currency": params.currency},
            "duration": "6h 30m",
            "stops": 0,
            "class": "Economy",
        },
        {
            "airline": "Delta",
            "flightNumber": "DL456",
            "departure": {"airport": params.origin, "time": f"{day}T12:15:00Z"},
            "arrival": {"airport": params.destination, "time": f"{day}T20:45:00Z"},
            "price": {"amount": 680, "currency": params.currency},
            "duration": "8h 30m",
            "stops": 1,
            "class": "Economy",
        },
    ]


def _mock_hotels(params: HotelSearchParams) -> list[dict[str, Any]]:
    return [
        {
            "name": "Grand Hotel Downtown",
            "rating": 4.5,
            "address": f"123 Main St, {params.destination}",
            "price": {"amount": 150, "currency": params.currency, "per": "night"},
            "amenities": ["WiFi", "Pool", "Gym", "Restaurant"],
            "distanceFromCenter": "0.5 km",
            "reviewScore": 8.7,
            "reviewCount": 1250,
        },
        {
            "name": "Budget Inn Express",
            "rating": 3.0,
            "address": f"456 Side St, {params.destination}",
            "price": {"amount": 75, "currency": params.currency, "per": "night"},
            "amenities": ["WiFi", "Parking"],
            "distanceFromCenter": "2.1 km",
            "reviewScore": 7.2,
            "reviewCount": 890,
        },
    ]


def _hotel_summary(params: HotelSearchParams, hotels: list[dict[str, Any]]) -> dict[str, Any]:
    nights = (params.check_out - params.check_in).days
    payload: dict[str, Any] = {
        "searchParams": params.to_wire(),
        "hotels": hotels,
        "searchDate": datetime.now(UTC).isoformat(),
        "totalResults": len(hotels),
        "nights": nights,
    }

    # Live search results may carry no prices
    prices = [h["price"]["amount"] for h in hotels if h.get("price")]
    if prices:
        payload["cheapestPerNight"] = min(prices)
        payload["averagePerNight"] = sum(prices) / len(prices)
        payload["totalRange"] = {"min": min(prices) * nights, "max": max(prices) * nights}
    return payload


def _visa_rules(params: VisaCheckParams) -> dict[str, Any]:
    if params.to_country.upper() in VISA_FREE_DESTINATIONS:
        return {
            "required": False,
            "type": "Visa-free travel",
            "maxStay": "90 days",
            "requirements": [
                "Valid passport (minimum 6 months validity)",
                "Return ticket",
                "Proof of sufficient funds",
            ],
            "processingTime": "N/A",
            "cost": {"amount": 0, "currency": "USD"},
            "validityPeriod": "N/A",
        }

    return {
        "required": True,
        "type": "Tourist Visa",
        "maxStay": "30 days",
        "requirements": [
            "Valid passport (minimum 6 months validity)",
            "Completed visa application form",
            "Recent passport-size photographs",
            "Flight itinerary",
            "Hotel reservation",
            "Bank statements (last 3 months)",
            "Travel insurance",
        ],
        "processingTime": "5-10 business days",
        "cost": {"amount": 60, "currency": "USD"},
        "validityPeriod": "90 days from issue date",
        "applicationProcess": [
            "Complete online application",
            "Schedule appointment at consulate",
            "Submit required documents",
            "Pay visa fee",
            "Attend interview (if required)",
            "Wait for processing",
        ],
    }
