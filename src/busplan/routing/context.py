"""
context.py

Infer whether a planning request is a morning pickup or an afternoon dropoff
from its requested time and the school's configured time slots.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

from busplan.core_types import RouteContext
from busplan.errors import InvalidInputError
from busplan.utils.logging import BusplanLogger

logger = BusplanLogger.get_logger(__name__)

DEFAULT_TIMEZONE = "Europe/Athens"
DEFAULT_WINDOW_MIN = 120


def _slot_minutes(value: str) -> int:
    """Minutes after midnight of an ``HH:MM`` (or ``HH:MM:SS``) slot time."""
    parts = value.split(":")
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except (IndexError, ValueError):
        hour = minute = -1
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidInputError(f"Invalid time slot time_value: {value!r} (expected HH:MM)")
    return hour * 60 + minute


@dataclass(frozen=True)
class TimeSlot:
    slot_type: str  # pickup or dropoff
    time_value: str  # HH:MM, school-local

    def __post_init__(self):
        _slot_minutes(self.time_value)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> 'TimeSlot':
        try:
            return TimeSlot(slot_type=str(data["slot_type"]).lower(), time_value=str(data["time_value"]))
        except (KeyError, TypeError) as exc:
            raise InvalidInputError(f"Invalid time slot: {data!r}") from exc

    @property
    def minutes(self) -> int:
        return _slot_minutes(self.time_value)


def _local_time(value: str | datetime, timezone: str) -> datetime:
    """Convert a requested time to the school's timezone; naive values are school-local."""
    zone = ZoneInfo(timezone)
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return dt.replace(tzinfo=zone) if dt.tzinfo is None else dt.astimezone(zone)


def infer_route_context(
    depart_at: Optional[str | datetime] = None,
    arrive_at: Optional[str | datetime] = None,
    time_slots: Sequence[TimeSlot | dict[str, Any]] = (),
    timezone: str = DEFAULT_TIMEZONE,
    window_min: int = DEFAULT_WINDOW_MIN,
) -> RouteContext:
    """
    Classify a request as pickup, dropoff or mixed.

    A requested time within ``window_min`` minutes of a pickup slot means
    pickup, else of a dropoff slot means dropoff. Without a match the context
    follows the only slot type configured, and is mixed when both or neither
    exist. An unparsable time yields the ``unknown`` context.

    Raises:
        InvalidInputError: If a time slot is missing a field or its time is not HH:MM.
    """
    slots = [s if isinstance(s, TimeSlot) else TimeSlot.from_dict(s) for s in time_slots]
    pickup_slots = [s for s in slots if s.slot_type == "pickup"]
    dropoff_slots = [s for s in slots if s.slot_type == "dropoff"]
    requested = depart_at or arrive_at

    if requested:
        try:
            local = _local_time(requested, timezone)
        except (ValueError, KeyError) as exc:
            logger.warning(f"Could not interpret requested time {requested!r}: {exc}")
            return RouteContext(context="unknown", suggested_time=_as_text(requested))

        target = local.hour * 60 + local.minute

        def within(candidates: list[TimeSlot]) -> bool:
            return any(abs(target - slot.minutes) <= window_min for slot in candidates)

        if within(pickup_slots):
            return RouteContext(
                context="pickup",
                suggested_time=_as_text(depart_at or requested),
                description="Morning pickup route (home -> school)",
                timezone=timezone,
                local_hour=local.hour,
            )
        if within(dropoff_slots):
            return RouteContext(
                context="dropoff",
                suggested_time=_as_text(arrive_at or requested),
                description="Afternoon dropoff route (school -> home)",
                timezone=timezone,
                local_hour=local.hour,
            )

    if pickup_slots and not dropoff_slots:
        return RouteContext("pickup", _as_text(depart_at), "Default pickup route context")
    if dropoff_slots and not pickup_slots:
        return RouteContext("dropoff", _as_text(arrive_at), "Default dropoff route context")
    return RouteContext("mixed", _as_text(requested), "Mixed route context - using provided timing")


def apply_contextual_timing(
    context: RouteContext,
    depart_at: Optional[str] = None,
    arrive_at: Optional[str] = None,
) -> tuple[Optional[str], Optional[str]]:
    """Fill departure (pickup) or arrival (dropoff) from the context when neither was given."""
    if not depart_at and not arrive_at:
        if context.context == "pickup":
            return context.suggested_time, None
        if context.context == "dropoff":
            return None, context.suggested_time
    return depart_at, arrive_at


def _as_text(value: Optional[str | datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else str(value)
