"""
Validation of text returned by the generative AI collaborator.

Model output is untrusted: JSON is pulled out of fenced code blocks or bare
objects, screened for unsafe content and then parsed into a pydantic schema
or a plain mapping. Nothing here raises; every failure becomes a
``ValidationResult.failure`` with a message that never repeats the payload.
"""

import json
import re
from typing import Any, Dict, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from app.api.schemas import (
    GenericAIResponse,
    LocationExtraction,
    TravelAdvice,
    TravelSearchFilters,
    ValidationResult,
)
from app.core.settings import settings

# Set up logging
logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
MALICIOUS_PATTERN = re.compile(r"(script|javascript|<|>|eval|exec|system|cmd)", re.IGNORECASE)

DEFAULT_ADVICE_CATEGORY = "general"
DEFAULT_ADVICE_CONFIDENCE = 0.8

NO_JSON_FOUND = "No valid JSON found in AI response"
INVALID_CONTENT = "Invalid response content detected"
INVALID_JSON = "Invalid JSON format in AI response"
EMPTY_RESPONSE = "AI response is empty"
RESPONSE_TOO_LONG = "AI response exceeds maximum length"
NO_CONTENT_FOUND = "No valid content found in AI response"


def extract_json(response: Optional[str]) -> Optional[str]:
    """Return the JSON candidate inside a response, or None"""
    if response is None or not response.strip():
        return None

    # Try to extract from code blocks first
    match = JSON_CODE_BLOCK_PATTERN.search(response)
    if match:
        return match.group(1).strip()

    trimmed = response.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed
    if trimmed.startswith("[") and trimmed.endswith("]"):
        return trimmed
    return None


def contains_malicious_content(content: Optional[str]) -> bool:
    if content is None:
        return False
    return MALICIOUS_PATTERN.search(content) is not None


def format_validation_errors(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "Validation errors: " + "".join(f"{message}; " for message in messages)


class AIResponseValidator:
    """Validates AI responses against the response schemas"""

    def __init__(self, max_response_length: Optional[int] = None):
        self.max_response_length = max_response_length or settings.AI_RESPONSE_MAX_LENGTH

    def _too_long(self, response: Optional[str]) -> bool:
        return response is not None and len(response) > self.max_response_length

    def _screen(self, content: str, operation: str) -> bool:
        if contains_malicious_content(content):
            logger.warning("ai_response_rejected", operation=operation, reason="malicious_content")
            return False
        return True

    def _validate_model(self, response: Optional[str], model: Type[ModelT], operation: str) -> ValidationResult[ModelT]:
        if self._too_long(response):
            return ValidationResult.failure(RESPONSE_TOO_LONG)

        clean_json = extract_json(response)
        if clean_json is None:
            return ValidationResult.failure(NO_JSON_FOUND)
        if not self._screen(clean_json, operation):
            return ValidationResult.failure(INVALID_CONTENT)

        try:
            payload = json.loads(clean_json)
        except json.JSONDecodeError as e:
            logger.error("ai_response_json_invalid", operation=operation, error=str(e))
            return ValidationResult.failure(INVALID_JSON)

        try:
            return ValidationResult.success(model.model_validate(payload))
        except ValidationError as e:
            logger.debug("ai_response_schema_invalid", operation=operation, error_count=e.error_count())
            return ValidationResult.failure(format_validation_errors(e))

    def validate_travel_search_filters(self, response: Optional[str]) -> ValidationResult[TravelSearchFilters]:
        """Validates and parses travel search filters from an AI response"""
        return self._validate_model(response, TravelSearchFilters, "travel_search_filters")

    def validate_location_extraction(self, response: Optional[str]) -> ValidationResult[LocationExtraction]:
        return self._validate_model(response, LocationExtraction, "location_extraction")

    def validate_generic_response(self, response: Optional[str]) -> ValidationResult[GenericAIResponse]:
        return self._validate_model(response, GenericAIResponse, "generic_response")

    def validate_travel_advice(self, response: Optional[str]) -> ValidationResult[TravelAdvice]:
        """
        Validates travel advice. Plain text is acceptable here: a response
        without JSON is wrapped as general advice with a fixed confidence.
        """
        if self._too_long(response):
            return ValidationResult.failure(RESPONSE_TOO_LONG)

        if extract_json(response) is not None:
            return self._validate_model(response, TravelAdvice, "travel_advice")

        if response is None or not response.strip():
            return ValidationResult.failure(NO_CONTENT_FOUND)
        if not self._screen(response, "travel_advice"):
            return ValidationResult.failure(INVALID_CONTENT)

        try:
            advice = TravelAdvice(
                response=response.strip(),
                category=DEFAULT_ADVICE_CATEGORY,
                confidence=DEFAULT_ADVICE_CONFIDENCE,
            )
        except ValidationError as e:
            return ValidationResult.failure(format_validation_errors(e))
        return ValidationResult.success(advice)

    def validate_basic_response(self, response: Optional[str]) -> ValidationResult[str]:
        """Validates free text for emptiness, length and unsafe content"""
        if response is None or not response.strip():
            return ValidationResult.failure(EMPTY_RESPONSE)
        if self._too_long(response):
            return ValidationResult.failure(RESPONSE_TOO_LONG)
        if not self._screen(response, "basic_response"):
            return ValidationResult.failure(INVALID_CONTENT)
        return ValidationResult.success(response.strip())

    def validate_and_parse_to_map(self, response: Optional[str]) -> ValidationResult[Dict[str, Any]]:
        """Parses an AI response into a plain mapping after screening it"""
        if self._too_long(response):
            return ValidationResult.failure(RESPONSE_TOO_LONG)

        clean_json = extract_json(response)
        if clean_json is None:
            return ValidationResult.failure(NO_JSON_FOUND)
        if not self._screen(clean_json, "parse_to_map"):
            return ValidationResult.failure(INVALID_CONTENT)

        try:
            payload = json.loads(clean_json)
        except json.JSONDecodeError as e:
            logger.error("ai_response_json_invalid", operation="parse_to_map", error=str(e))
            return ValidationResult.failure(INVALID_JSON)

        if not isinstance(payload, dict):
            return ValidationResult.failure(INVALID_JSON)
        return ValidationResult.success(payload)
