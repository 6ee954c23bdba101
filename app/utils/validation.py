# app/utils/validation.py
"""
Input validation for service requests and offers.

Each validator collects every violated field before failing, so the caller
gets the full ``errors`` map in one response.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from app.errors import ValidationError
from app.models import ServiceType

SERVICE_TYPE_VALUES = [t.value for t in ServiceType]

# Numeric(12, 2) columns
AMOUNT_LIMIT = Decimal(10) ** 10
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ServiceRequestInput:
    service_type: ServiceType
    description: str | None
    location_lat: float | None
    location_lon: float | None
    required_date: date
    budget: Decimal | None


@dataclass(frozen=True)
class OfferInput:
    request_id: int
    offered_price: Decimal
    estimated_cost: Decimal
    notes: str | None


# =========================================================
# Parsers
# =========================================================
def _parse_decimal(val: Any) -> Decimal | None:
    if isinstance(val, bool) or val is None:
        return None
    if isinstance(val, str) and not val.strip():
        return None
    try:
        d = Decimal(str(val).strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def _parse_float(val: Any) -> float | None:
    d = _parse_decimal(val)
    return float(d) if d is not None else None


def _parse_date(val: Any) -> date | None:
    if not isinstance(val, str) or not val.strip():
        return None
    raw = val.strip()
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return datetime.fromisoformat(raw).date()
    except ValueError:
        return None


def _amount_error(field: str, value: Decimal) -> str | None:
    if abs(value) >= AMOUNT_LIMIT:
        return f"{field} must be less than 10000000000."
    if value != value.quantize(CENTS):
        return f"{field} must have at most 2 decimal places."
    return None


def _parse_positive_int(val: Any) -> int | None:
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val if val > 0 else None
    if isinstance(val, str) and val.strip().isdigit():
        n = int(val.strip())
        return n if n > 0 else None
    return None


def _clean_text(val: Any) -> str | None:
    if val is None:
        return None
    s = str(val).strip()
    return s or None


def _present(data: dict, key: str) -> bool:
    return key in data and data[key] is not None and data[key] != ""


# =========================================================
# Service request
# =========================================================
def validate_service_request(data: dict, today: date | None = None) -> ServiceRequestInput:
    today = today or date.today()
    errors: dict[str, str] = {}

    raw_type = data.get("service_type")
    service_type = None
    if isinstance(raw_type, str) and raw_type in SERVICE_TYPE_VALUES:
        service_type = ServiceType(raw_type)
    else:
        errors["service_type"] = (
            "Valid service type (ploughing, harvesting, spraying, other) is required."
        )

    required_date = None
    if not _present(data, "required_date") or not isinstance(data.get("required_date"), str):
        errors["required_date"] = "Required date is missing or invalid."
    else:
        required_date = _parse_date(data["required_date"])
        if required_date is None:
            errors["required_date"] = "Invalid date format for required_date (use YYYY-MM-DD)."
        elif required_date < today:
            errors["required_date"] = "Required date cannot be in the past."

    lat = None
    if _present(data, "location_lat"):
        lat = _parse_float(data["location_lat"])
        if lat is None or not -90 <= lat <= 90:
            errors["location_lat"] = "Invalid latitude (must be a number between -90 and 90)."

    lon = None
    if _present(data, "location_lon"):
        lon = _parse_float(data["location_lon"])
        if lon is None or not -180 <= lon <= 180:
            errors["location_lon"] = "Invalid longitude (must be a number between -180 and 180)."

    budget = None
    if _present(data, "budget"):
        budget = _parse_decimal(data["budget"])
        if budget is None or budget < 0:
            errors["budget"] = "Budget must be a non-negative number."
        else:
            message = _amount_error("budget", budget)
            if message:
                errors["budget"] = message

    if errors:
        raise ValidationError("Validation failed. Please check your inputs.", errors=errors)

    return ServiceRequestInput(
        service_type=service_type,
        description=_clean_text(data.get("description")),
        location_lat=lat,
        location_lon=lon,
        required_date=required_date,
        budget=budget,
    )


# =========================================================
# Offer
# =========================================================
def validate_offer(data: dict) -> OfferInput:
    errors: dict[str, str] = {}

    request_id = _parse_positive_int(data.get("request_id"))
    if request_id is None:
        errors["request_id"] = "request_id is required."

    amounts: dict[str, Decimal | None] = {}
    for field in ("offered_price", "estimated_cost"):
        if not _present(data, field):
            errors[field] = f"{field} is required."
            continue
        value = _parse_decimal(data[field])
        if value is None or value <= 0:
            errors[field] = f"{field} must be a positive number."
        else:
            message = _amount_error(field, value)
            if message:
                errors[field] = message
        amounts[field] = value

    if errors:
        raise ValidationError(
            "Please provide request_id, offered_price, and estimated_cost as positive values.",
            errors=errors,
        )

    return OfferInput(
        request_id=request_id,
        offered_price=amounts["offered_price"],
        estimated_cost=amounts["estimated_cost"],
        notes=_clean_text(data.get("notes")),
    )
