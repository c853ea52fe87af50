"""
Rule-based travel request parser.

Turns free-form search text into a complete filter set without calling a
model. Every rule is a (name, pattern, handler) entry in ``EXTRACTION_RULES``
and the table is applied top to bottom in a single pass, so precedence is
the table order. The reference date is always passed in, which keeps the
parser a pure function of its arguments.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

import dateparser
import structlog
from dateutil.relativedelta import relativedelta, FR

from app.api.schemas import TravelFilterSet
from app.core.settings import settings

# Set up logging
logger = structlog.get_logger(__name__)

ONE_WAY = "One-Way"
ROUND_TRIP = "Round-Trip"
DEFAULT_TRIP_DAYS = 7

_MONTH_FULL = r'(?:January|February|March|April|May|June|July|August|September|October|November|December)'

PASSENGERS_PATTERN = re.compile(
    r'(\d+)\s*(?:people|passengers|person|kids|adults)|(?:family of)\s*(\d+)', re.IGNORECASE
)
ONE_WAY_PATTERN = re.compile(r'one-way|one way|moving|relocating', re.IGNORECASE)
FROM_LOCATION_PATTERN = re.compile(r'from\s+([\w\s,]+?)(?:\s+to|$)', re.IGNORECASE)
TO_LOCATION_PATTERN = re.compile(r'to\s+([\w\s,]+?)(?:\s+from|$)', re.IGNORECASE)
TOUR_OF_PATTERN = re.compile(r'tour of ([\w\s,]+)')
DURATION_PATTERN = re.compile(r'(\d+)\s+(week|day|month)s?', re.IGNORECASE)
MONTH_YEAR_PATTERN = re.compile(rf'({_MONTH_FULL})\s+(\d{{4}})', re.IGNORECASE)
NEXT_MONTH_PATTERN = re.compile(r'next\s+month', re.IGNORECASE)

DATE_SETTINGS = {
    "PREFER_DAY_OF_MONTH": "first",
    "STRICT_PARSING": False,
    "RETURN_AS_TIMEZONE_AWARE": False,
}


@dataclass
class ExtractionState:
    """Working values for one parse; starts from the extractor defaults"""
    text: str
    reference_date: date
    passengers: int = 1
    trip: str = ROUND_TRIP
    from_location: str = ""
    to_location: str = ""
    from_date: Optional[date] = None
    duration_value: int = -1
    duration_unit: str = ""
    matched: List[str] = field(default_factory=list)

    @property
    def lower_text(self) -> str:
        return self.text.lower()


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    pattern: re.Pattern
    handler: Callable[[re.Match, ExtractionState], None]
    use_original_case: bool = False
    skip_when: Optional[Callable[[ExtractionState], bool]] = None


def title_case(value: str) -> str:
    """'new YORK' -> 'New York'; internal capitals are flattened"""
    if not value:
        return value
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.strip().split())


def _set_passengers(match: re.Match, state: ExtractionState) -> None:
    count = match.group(1) if match.group(1) is not None else match.group(2)
    if int(count) >= 1:
        state.passengers = int(count)


def _set_one_way(match: re.Match, state: ExtractionState) -> None:
    state.trip = ONE_WAY


def _set_from_location(match: re.Match, state: ExtractionState) -> None:
    state.from_location = title_case(match.group(1).strip())


def _set_to_location(match: re.Match, state: ExtractionState) -> None:
    state.to_location = title_case(match.group(1).strip())


def _set_tour_destination(match: re.Match, state: ExtractionState) -> None:
    state.to_location = title_case(match.group(1).strip())


def _set_duration(match: re.Match, state: ExtractionState) -> None:
    state.duration_value = int(match.group(1))
    state.duration_unit = match.group(2).lower()


def _set_month_year_start(match: re.Match, state: ExtractionState) -> None:
    parsed = dateparser.parse(
        f"{match.group(1)} {match.group(2)}",
        languages=["en"],
        settings={**DATE_SETTINGS, "RELATIVE_BASE": datetime.combine(state.reference_date, datetime.min.time())},
    )
    if parsed is None:
        logger.warning("month_year_unparsed", token=match.group(0))
        return
    state.from_date = parsed.date().replace(day=1)


def _set_next_month_start(match: re.Match, state: ExtractionState) -> None:
    state.from_date = state.reference_date.replace(day=1) + relativedelta(months=1)


def _skip_tour_fallback(state: ExtractionState) -> bool:
    # only used when no "to <place>" phrase was found
    return "to" in state.matched or "tour of" not in state.lower_text


def _has_start_date(state: ExtractionState) -> bool:
    return state.from_date is not None


# Applied in order; later rules may read what earlier ones set
EXTRACTION_RULES = (
    ExtractionRule("passengers", PASSENGERS_PATTERN, _set_passengers),
    ExtractionRule("trip", ONE_WAY_PATTERN, _set_one_way),
    ExtractionRule("from", FROM_LOCATION_PATTERN, _set_from_location, use_original_case=True),
    ExtractionRule("to", TO_LOCATION_PATTERN, _set_to_location, use_original_case=True),
    ExtractionRule("tour_of", TOUR_OF_PATTERN, _set_tour_destination, skip_when=_skip_tour_fallback),
    ExtractionRule("duration", DURATION_PATTERN, _set_duration),
    ExtractionRule("month_year", MONTH_YEAR_PATTERN, _set_month_year_start),
    ExtractionRule("next_month", NEXT_MONTH_PATTERN, _set_next_month_start, skip_when=_has_start_date),
)


def next_friday(reference_date: date) -> date:
    """First Friday strictly after the reference date"""
    return reference_date + relativedelta(days=1, weekday=FR)


def add_duration(start: date, value: int, unit: str) -> date:
    """
    Add a parsed duration; month steps clamp to the last valid day.

    Durations that run past the supported calendar end at date.max.
    """
    try:
        if unit == "week":
            return start + timedelta(weeks=value)
        if unit == "day":
            return start + timedelta(days=value)
        if unit == "month":
            return start + relativedelta(months=value)
    except (OverflowError, ValueError) as e:
        logger.warning("duration_out_of_range", value=value, unit=unit, error=str(e))
        return date.max
    return start + timedelta(days=DEFAULT_TRIP_DAYS)


def _apply_rules(state: ExtractionState) -> ExtractionState:
    lower_text = state.lower_text
    for rule in EXTRACTION_RULES:
        if rule.skip_when is not None and rule.skip_when(state):
            continue
        match = rule.pattern.search(state.text if rule.use_original_case else lower_text)
        if match:
            rule.handler(match, state)
            state.matched.append(rule.name)
    return state


def extract_travel_filters(text: Optional[str], reference_date: date) -> TravelFilterSet:
    """Derive a complete filter set from search text and a reference date"""
    state = ExtractionState(
        text=text or "",
        reference_date=reference_date,
        from_location=settings.EXTRACTOR_DEFAULT_FROM,
        to_location=settings.EXTRACTOR_DEFAULT_TO,
    )
    _apply_rules(state)

    from_date = state.from_date or next_friday(reference_date)

    to_date = None
    if state.trip == ROUND_TRIP:
        if state.duration_value > 0:
            to_date = add_duration(from_date, state.duration_value, state.duration_unit)
        else:
            to_date = from_date + timedelta(days=DEFAULT_TRIP_DAYS)

    logger.debug(
        "travel_filters_extracted",
        matched_rules=state.matched,
        trip=state.trip,
        passengers=state.passengers,
    )

    return {
        "fromDate": from_date.isoformat(),
        "passengers": state.passengers,
        "trip": state.trip,
        "toDate": to_date.isoformat() if to_date else None,
        "from": state.from_location,
        "to": state.to_location,
    }


def extract_travel_info(text: Optional[str], reference_date: date) -> str:
    """Same as extract_travel_filters, rendered as an indented JSON document"""
    return json.dumps(extract_travel_filters(text, reference_date), indent=4)
