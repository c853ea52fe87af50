"""
Tests for AI response extraction, screening and schema validation
"""

from datetime import date

import pytest

from app.api.schemas import TravelSearchFilters, ValidationResult
from app.core.ai_validation import AIResponseValidator, contains_malicious_content, extract_json


# ── JSON extraction ──────────────────────────────────────────────────────────

def test_extract_json_from_code_block():
    response = 'Sure! Here are the filters:\n```json\n{"from": "Paris"}\n```\nEnjoy.'
    assert extract_json(response) == '{"from": "Paris"}'


def test_extract_json_from_unlabelled_code_block():
    assert extract_json('```\n[1, 2]\n```') == "[1, 2]"


def test_extract_json_bare_object_and_array():
    assert extract_json('  {"a": 1}  ') == '{"a": 1}'
    assert extract_json("[1]") == "[1]"


@pytest.mark.parametrize("response", [None, "", "   ", "just some text", '{"a": 1} trailing'])
def test_extract_json_absent(response):
    assert extract_json(response) is None


def test_malicious_content_patterns():
    assert contains_malicious_content("<b>")
    assert contains_malicious_content("call EVAL now")
    assert contains_malicious_content("open cmd.exe")
    assert not contains_malicious_content('{"from": "Paris"}')
    assert not contains_malicious_content(None)


# ── Structured travel search filters ─────────────────────────────────────────

def test_travel_search_filters_valid(validator):
    response = """
    {
        "from": "New York",
        "to": "London",
        "fromDate": "2025-01-01",
        "toDate": "2025-01-15",
        "passengers": 2,
        "trip": "Round-Trip"
    }
    """
    result = validator.validate_travel_search_filters(response)

    assert result.is_valid
    assert result.error_message is None
    assert result.data.from_location == "New York"
    assert result.data.to_location == "London"
    assert result.data.from_date == date(2025, 1, 1)
    assert result.data.passengers == 2


def test_travel_search_filters_code_block(validator):
    response = '```json\n{"from": "Paris", "to": "Rome"}\n```'
    result = validator.validate_travel_search_filters(response)

    assert result.is_valid
    assert result.data.from_location == "Paris"
    assert result.data.to_location == "Rome"
    assert result.data.passengers is None


def test_travel_search_filters_constraint_violations(validator):
    response = '{"from": "%s", "passengers": 15, "trip": "Return"}' % ("A" * 101)
    result = validator.validate_travel_search_filters(response)

    assert not result.is_valid
    assert result.data is None
    assert result.error_message.startswith("Validation errors: ")
    # every violation is reported
    assert "from" in result.error_message
    assert "passengers" in result.error_message
    assert "trip" in result.error_message
    assert result.error_message.count("; ") == 3


def test_travel_search_filters_constraint_messages(validator):
    response = '{"from": "%s", "to": "%s", "passengers": 0, "trip": "Return"}' % ("A" * 101, "B" * 101)
    message = validator.validate_travel_search_filters(response).error_message

    assert "From location must be less than 100 characters" in message
    assert "To location must be less than 100 characters" in message
    assert "Passengers must be at least 1" in message
    assert "Trip type must be 'One-Way' or 'Round-Trip'" in message

    message = validator.validate_travel_search_filters('{"passengers": 11}').error_message
    assert "Passengers cannot exceed 10" in message


@pytest.mark.parametrize("passengers, valid", [(0, False), (1, True), (10, True), (11, False)])
def test_travel_search_filters_passenger_bounds(validator, passengers, valid):
    result = validator.validate_travel_search_filters('{"passengers": %d}' % passengers)
    assert result.is_valid is valid


def test_travel_search_filters_bad_date(validator):
    result = validator.validate_travel_search_filters('{"fromDate": "next tuesday"}')
    assert not result.is_valid
    assert "fromDate" in result.error_message


def test_travel_search_filters_array_rejected(validator):
    result = validator.validate_travel_search_filters('[{"from": "Paris"}]')
    assert not result.is_valid
    assert result.error_message.startswith("Validation errors")


def test_travel_search_filters_malicious(validator):
    result = validator.validate_travel_search_filters('{"from": "<script>alert(1)</script>"}')
    assert not result.is_valid
    assert result.error_message == "Invalid response content detected"
    # the payload is never echoed back
    assert "alert" not in result.error_message


def test_travel_search_filters_malformed_json(validator):
    result = validator.validate_travel_search_filters('{"from": "Paris", invalid}')
    assert not result.is_valid
    assert result.error_message == "Invalid JSON format in AI response"


def test_travel_search_filters_no_json(validator):
    result = validator.validate_travel_search_filters("I could not find any flights.")
    assert not result.is_valid
    assert result.error_message == "No valid JSON found in AI response"


def test_travel_search_filters_are_frozen(validator):
    result = validator.validate_travel_search_filters('{"from": "Paris"}')
    with pytest.raises(Exception):
        result.data.from_location = "Rome"


def test_structured_filters_to_filter_set():
    filters = TravelSearchFilters.model_validate(
        {"from": "Oslo", "fromDate": "2025-03-01", "passengers": 3, "searchContext": "ski trip"}
    )
    assert filters.to_filters() == {
        "from": "Oslo",
        "fromDate": "2025-03-01",
        "passengers": 3,
        "searchContext": "ski trip",
    }


# ── Generic map ──────────────────────────────────────────────────────────────

def test_parse_to_map_valid(validator):
    result = validator.validate_and_parse_to_map('{"key1": "value1", "key2": 123, "key3": true}')
    assert result.is_valid
    assert result.data == {"key1": "value1", "key2": 123, "key3": True}


def test_parse_to_map_rejects_non_object(validator):
    result = validator.validate_and_parse_to_map("[1, 2, 3]")
    assert not result.is_valid


def test_parse_to_map_malicious(validator):
    result = validator.validate_and_parse_to_map('{"note": "run system(rm)"}')
    assert not result.is_valid
    assert result.error_message == "Invalid response content detected"


# ── Free text ────────────────────────────────────────────────────────────────

def test_basic_response_valid(validator):
    result = validator.validate_basic_response("  This is a valid travel advice response.  ")
    assert result.is_valid
    assert result.data == "This is a valid travel advice response."


def test_basic_response_malicious(validator):
    result = validator.validate_basic_response("This contains <script>alert('xss')</script> content.")
    assert not result.is_valid
    assert result.error_message == "Invalid response content detected"


def test_basic_response_empty(validator):
    result = validator.validate_basic_response("")
    assert not result.is_valid
    assert result.error_message == "AI response is empty"


def test_length_ceiling_applies_regardless_of_content(validator):
    for text in ("a" * 10001, "<" * 10001):
        result = validator.validate_basic_response(text)
        assert not result.is_valid
        assert result.error_message == "AI response exceeds maximum length"

    assert validator.validate_basic_response("a" * 10000).is_valid
    assert not validator.validate_travel_search_filters('{"from": "%s"}' % ("a" * 10000)).is_valid


def test_custom_length_ceiling():
    result = AIResponseValidator(max_response_length=20).validate_basic_response("a perfectly fine sentence")
    assert result.error_message == "AI response exceeds maximum length"


# ── Location extraction ──────────────────────────────────────────────────────

def test_location_extraction_valid(validator):
    response = """
    {
        "location": "Paris, France",
        "country": "France",
        "city": "Paris",
        "latitude": "48.8566",
        "longitude": "-2.3522",
        "confidence": 0.95
    }
    """
    result = validator.validate_location_extraction(response)
    assert result.is_valid
    assert result.data.location == "Paris, France"
    assert result.data.country == "France"
    assert result.data.confidence == 0.95


def test_location_extraction_invalid(validator):
    response = '{"location": "", "latitude": "north", "confidence": 1.5}'
    result = validator.validate_location_extraction(response)
    assert not result.is_valid
    assert result.error_message.startswith("Validation errors")
    assert "latitude" in result.error_message
    assert "confidence" in result.error_message


def test_location_extraction_malformed(validator):
    result = validator.validate_location_extraction('{ "location": "Paris", invalid')
    assert not result.is_valid
    assert result.error_message is not None


# ── Travel advice ────────────────────────────────────────────────────────────

def test_travel_advice_json(validator):
    response = """
    {
        "response": "Visit in spring for mild weather.",
        "category": "timing",
        "recommendations": ["Book early", "Pack layers"],
        "confidence": 0.9
    }
    """
    result = validator.validate_travel_advice(response)
    assert result.is_valid
    assert result.data.category == "timing"
    assert result.data.recommendations == ["Book early", "Pack layers"]


def test_travel_advice_plain_text(validator):
    result = validator.validate_travel_advice("  Pack light and carry an umbrella in London.  ")
    assert result.is_valid
    assert result.data.response == "Pack light and carry an umbrella in London."
    assert result.data.category == "general"
    assert result.data.confidence == 0.8


def test_travel_advice_plain_text_malicious(validator):
    result = validator.validate_travel_advice("Just run cmd to book")
    assert not result.is_valid
    assert result.error_message == "Invalid response content detected"


def test_travel_advice_plain_text_too_long_for_schema(validator):
    result = validator.validate_travel_advice("word " * 500)
    assert not result.is_valid
    assert result.error_message.startswith("Validation errors")


def test_travel_advice_empty(validator):
    result = validator.validate_travel_advice("   ")
    assert not result.is_valid
    assert result.error_message == "No valid content found in AI response"


def test_travel_advice_long_recommendation(validator):
    response = '{"response": "ok", "recommendations": ["%s"]}' % ("x" * 201)
    assert not validator.validate_travel_advice(response).is_valid


# ── Generic response wrapper ─────────────────────────────────────────────────

def test_generic_response_valid(validator):
    response = '{"type": "explanation", "content": "A layover is a stop between flights.", "data": {"k": 1}}'
    result = validator.validate_generic_response(response)
    assert result.is_valid
    assert result.data.type == "explanation"
    assert result.data.data == {"k": 1}


def test_generic_response_unknown_type(validator):
    result = validator.validate_generic_response('{"type": "weather", "content": "Sunny"}')
    assert not result.is_valid
    assert "type" in result.error_message


# ── Result wrapper ───────────────────────────────────────────────────────────

def test_validation_result_is_exclusive():
    ok = ValidationResult.success({"a": 1})
    failed = ValidationResult.failure("nope")

    assert ok.is_valid and ok.data == {"a": 1} and ok.error_message is None
    assert not failed.is_valid and failed.data is None and failed.error_message == "nope"
