import re
from typing import List, Optional

import structlog

from app.api.schemas import InputValidationResult
from app.core.settings import settings

# Set up logging
logger = structlog.get_logger(__name__)

# Security patterns
SQL_INJECTION_PATTERN = re.compile(
    r"(union|select|insert|update|delete|drop|create|alter|exec|execute|script|javascript|vbscript|onload|onerror)",
    re.IGNORECASE,
)
XSS_PATTERN = re.compile(
    r"(<script|</script|<iframe|</iframe|<object|</object|<embed|</embed|javascript:|vbscript:|onload=|onerror=|onclick=)",
    re.IGNORECASE,
)
EXCESS_SPECIAL_CHARS_PATTERN = re.compile(r"[<>\"'&;{}\[\]]{5,}")

# Content patterns
VALID_CHARACTERS_PATTERN = re.compile(r"[a-zA-Z0-9\s\-,.():/]+")
TRAVEL_KEYWORDS_PATTERN = re.compile(
    r"\b(to|from|flight|trip|travel|hotel|car rental|vacation|destination)\b",
    re.IGNORECASE,
)

TRAVEL_KEYWORD_CHECK_MIN_LENGTH = 20


class SearchInputRejected(ValueError):
    """Raised when screened search input fails validation"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class SearchInputValidator:
    """Screens raw search text before it reaches filter extraction"""

    @staticmethod
    def validate(text: Optional[str]) -> InputValidationResult:
        """Validate search input and return errors and non-fatal warnings"""
        errors = []
        warnings = []

        if text is None or not text.strip():
            errors.append("Search input cannot be empty")
            return InputValidationResult(is_valid=False, errors=errors, warnings=warnings)

        min_length = settings.SEARCH_INPUT_MIN_LENGTH
        max_length = settings.SEARCH_INPUT_MAX_LENGTH
        if len(text) < min_length:
            errors.append(f"Input must be at least {min_length} characters long")
        elif len(text) > max_length:
            errors.append(f"Input cannot exceed {max_length} characters")

        words = text.split()
        if len(words) < settings.SEARCH_INPUT_MIN_WORDS:
            errors.append(f"Input must contain at least {settings.SEARCH_INPUT_MIN_WORDS} words")

        if SQL_INJECTION_PATTERN.search(text):
            errors.append("Input contains potential SQL injection attempt")

        if XSS_PATTERN.search(text):
            errors.append("Input contains potential XSS attack attempt")

        if EXCESS_SPECIAL_CHARS_PATTERN.search(text):
            errors.append("Input contains excessive special characters")

        if not VALID_CHARACTERS_PATTERN.fullmatch(text):
            warnings.append("Input contains unusual characters")

        if len(text) > TRAVEL_KEYWORD_CHECK_MIN_LENGTH and not TRAVEL_KEYWORDS_PATTERN.search(text):
            warnings.append("No travel-related keywords detected in input")

        if errors:
            # error strings only; the rejected text is never logged
            logger.warning(
                "search_input_rejected",
                error_count=len(errors),
                text_length=len(text),
            )

        return InputValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_search_input(text: Optional[str]) -> InputValidationResult:
    """Validate search input"""
    return SearchInputValidator.validate(text)
