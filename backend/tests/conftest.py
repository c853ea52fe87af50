"""Shared pytest fixtures for the search filter test suite."""
from datetime import date

import pytest

from app.core.ai_validation import AIResponseValidator
from app.core.search_filters import SearchFilterService

# Tuesday; the next Friday is 2024-05-24
REFERENCE_DATE = date(2024, 5, 21)


@pytest.fixture
def reference_date() -> date:
    return REFERENCE_DATE


@pytest.fixture
def validator() -> AIResponseValidator:
    return AIResponseValidator()


@pytest.fixture
def service() -> SearchFilterService:
    """Service without a generator; the rule-based parser stands in for the AI"""
    return SearchFilterService()
