import re
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import structlog

from app.api.schemas import TravelFilterSet, TravelSearchFilters
from app.core.ai_validation import AIResponseValidator
from app.core.logging import configure_logging
from app.core.nlp.parser import DEFAULT_TRIP_DAYS, ONE_WAY, ROUND_TRIP, add_duration, extract_travel_info
from app.core.security import SearchInputRejected, SearchInputValidator
from app.core.settings import Settings, settings as default_settings

# Set up structured logging
configure_logging()
logger = structlog.get_logger(__name__)

SEARCH_INPUT_PLACEHOLDER = "{searchInput}"
FILTER_KEY_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
UNSAFE_VALUE_PATTERN = re.compile(r"[<>\"'&;]")

# Opaque text generation collaborator: prompt in, model text out
TextGenerator = Callable[[str], Optional[str]]


def create_default_filters(today: Optional[date] = None, config: Optional[Settings] = None) -> TravelFilterSet:
    """Single source of the fallback filter values"""
    config = config or default_settings
    today = today or date.today()
    return {
        "from": config.DEFAULT_FROM_LOCATION,
        "to": config.DEFAULT_TO_LOCATION,
        "fromDate": (today + timedelta(days=config.DEFAULT_DEPARTURE_DAYS)).isoformat(),
        "toDate": (today + timedelta(days=config.DEFAULT_RETURN_DAYS)).isoformat(),
        "passengers": config.DEFAULT_PASSENGERS,
        "trip": config.DEFAULT_TRIP_TYPE,
    }


def is_valid_filter_key(key: Any, max_length: int = 50) -> bool:
    """Keys must look like identifiers to be merged"""
    return isinstance(key, str) and len(key) <= max_length and FILTER_KEY_PATTERN.match(key) is not None


def is_valid_filter_value(value: Any, max_length: int = 200) -> bool:
    if value is None:
        return False
    value_str = str(value)
    return len(value_str) <= max_length and UNSAFE_VALUE_PATTERN.search(value_str) is None


def _parse_iso_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def load_prompt_template(path: str) -> Optional[str]:
    """Read the extraction prompt; a missing file disables AI enhancement"""
    try:
        template = Path(path).read_text(encoding="utf-8")
        logger.info("prompt_template_loaded", path=path)
        return template
    except OSError as e:
        logger.error("prompt_template_load_failed", path=path, error=str(e))
        return None


class SearchFilterService:
    """
    Builds the search filter set for a request.

    Starts from the default filters, merges a validated AI response over
    them (structured schema first, then a sanitized generic mapping) and
    always returns a complete filter set. When no generator is configured
    the rule-based parser output stands in for the AI response.
    """

    def __init__(
        self,
        generate: Optional[TextGenerator] = None,
        prompt_template: Optional[str] = None,
        validator: Optional[AIResponseValidator] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.generate = generate
        self.validator = validator or AIResponseValidator(self.config.AI_RESPONSE_MAX_LENGTH)
        if prompt_template is None and generate is not None:
            prompt_template = load_prompt_template(self.config.TRAVEL_EXTRACTION_PROMPT_PATH)
        self.prompt_template = prompt_template

    @property
    def ai_enabled(self) -> bool:
        return (
            self.config.ENABLE_AI_ENHANCEMENT
            and self.generate is not None
            and self.prompt_template is not None
        )

    def build_filters(
        self,
        raw_input: Optional[str],
        ai_response: Optional[str],
        defaults: Optional[TravelFilterSet] = None,
        today: Optional[date] = None,
    ) -> TravelFilterSet:
        """Merge an AI response over the defaults; never raises"""
        filters = dict(defaults) if defaults is not None else create_default_filters(today, self.config)

        if raw_input is None:
            logger.warning("search_input_missing", action="using_default_filters")
            return filters

        if ai_response is not None:
            try:
                self.validate_and_merge_ai_response(ai_response, filters)
            except Exception as e:
                logger.error("ai_response_merge_failed", error=str(e), error_type=type(e).__name__)

        self._enforce_trip_invariant(filters)
        self.add_search_context(raw_input, filters)
        return filters

    def validate_and_merge_ai_response(self, ai_response: str, filters: TravelFilterSet) -> bool:
        """Structured schema first, then generic mapping; True if anything merged"""
        structured = self.validator.validate_travel_search_filters(ai_response)
        if structured.is_valid:
            self.merge_structured_filters(structured.data, filters)
            logger.info("ai_filters_merged", source="structured")
            return True

        logger.debug("structured_validation_failed", reason=structured.error_message)

        mapped = self.validator.validate_and_parse_to_map(ai_response)
        if mapped.is_valid:
            self.merge_map_filters(mapped.data, filters)
            logger.info("ai_filters_merged", source="generic_map")
            return True

        logger.error("ai_response_invalid", reason=mapped.error_message, action="using_default_filters")
        return False

    @staticmethod
    def merge_structured_filters(travel_filters: TravelSearchFilters, filters: TravelFilterSet) -> None:
        filters.update(travel_filters.to_filters())

    def merge_map_filters(self, ai_filters: Dict[str, Any], filters: TravelFilterSet) -> None:
        skipped = 0
        for key, value in ai_filters.items():
            if (
                is_valid_filter_key(key, self.config.FILTER_KEY_MAX_LENGTH)
                and is_valid_filter_value(value, self.config.FILTER_VALUE_MAX_LENGTH)
            ):
                filters[key] = value
            else:
                skipped += 1
        if skipped:
            logger.debug("ai_filter_entries_skipped", count=skipped)

    @staticmethod
    def _enforce_trip_invariant(filters: TravelFilterSet) -> None:
        """toDate is None exactly when the trip is One-Way"""
        trip = filters.get("trip")
        if trip == ONE_WAY:
            filters["toDate"] = None
        elif trip == ROUND_TRIP and filters.get("toDate") is None:
            start = _parse_iso_date(filters.get("fromDate"))
            if start is None:
                logger.warning("return_date_unavailable", reason="no_valid_from_date")
                return
            filters["toDate"] = add_duration(start, DEFAULT_TRIP_DAYS, "day").isoformat()

    @staticmethod
    def add_search_context(search_input: str, filters: TravelFilterSet) -> None:
        if "searchContext" not in filters:
            filters["searchContext"] = search_input

    def generate_ai_response(self, search_input: str) -> Optional[str]:
        """Ask the collaborator for filters; any failure means no response"""
        if not self.ai_enabled:
            return None
        prompt = self.prompt_template.replace(SEARCH_INPUT_PLACEHOLDER, search_input)
        try:
            response = self.generate(prompt)
            logger.debug("ai_response_received", response_length=len(response) if response else 0)
            return response
        except Exception as e:
            logger.error(
                "ai_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
                action="using_fallback_values",
            )
            return None

    def enhance_filters_with_ai(self, search_input: str, filters: TravelFilterSet, today: Optional[date] = None) -> None:
        """Merge AI output, or the rule-based substitute, into filters in place"""
        ai_response = self.generate_ai_response(search_input)
        if ai_response is None:
            if self.ai_enabled:
                # generator was configured but returned nothing usable
                return
            ai_response = extract_travel_info(search_input, today or date.today())
            logger.info("rule_based_filters_used")
        self.validate_and_merge_ai_response(ai_response, filters)

    def filters_from_raw_text(self, raw_input: Optional[str], today: Optional[date] = None) -> TravelFilterSet:
        """Filters for unscreened input; the merge chain handles unsafe content"""
        filters = create_default_filters(today, self.config)
        if raw_input is None:
            logger.warning("search_input_missing", action="using_default_filters")
            return filters

        try:
            self.enhance_filters_with_ai(raw_input, filters, today)
        except Exception as e:
            logger.error("filter_enhancement_failed", error=str(e), error_type=type(e).__name__)

        self._enforce_trip_invariant(filters)
        self.add_search_context(raw_input, filters)
        return filters

    def filters_from_screened_text(self, raw_input: Optional[str], today: Optional[date] = None) -> TravelFilterSet:
        """Filters for input that must pass SearchInputValidator first"""
        result = SearchInputValidator.validate(raw_input)
        if not result.is_valid:
            raise SearchInputRejected(result.errors)

        filters = self.filters_from_raw_text(raw_input, today)
        if result.warnings:
            filters["warnings"] = result.warnings
        return filters
