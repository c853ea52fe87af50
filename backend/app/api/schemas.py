import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

# Filter set passed between the extractor, the merger and the caller.
# Keys: from, to, fromDate, toDate, passengers, trip, searchContext, warnings
TravelFilterSet = Dict[str, Any]

TRIP_PATTERN = r"^(One-Way|Round-Trip)$"
COORDINATE_PATTERN = r"^-?\d{1,3}\.\d{1,10}$"
RESPONSE_TYPE_PATTERN = r"^(travel_search|location_extraction|travel_advice|explanation)$"


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Either usable data or a rejection reason, never both"""
    is_valid: bool
    data: Optional[T] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, data: T) -> "ValidationResult[T]":
        return cls(is_valid=True, data=data)

    @classmethod
    def failure(cls, error_message: str) -> "ValidationResult[T]":
        return cls(is_valid=False, error_message=error_message)


class InputValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


# ===== AI RESPONSE SCHEMAS =====

class TravelSearchFilters(BaseModel):
    """Structured travel search filters returned by the model"""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    from_location: Optional[str] = Field(None, alias="from")
    to_location: Optional[str] = Field(None, alias="to")
    from_date: Optional[date] = Field(None, alias="fromDate")
    to_date: Optional[date] = Field(None, alias="toDate")
    passengers: Optional[int] = None
    trip: Optional[str] = None
    search_context: Optional[str] = Field(None, alias="searchContext")

    @field_validator('from_location')
    @classmethod
    def validate_from_location(cls, v):
        if v is not None and len(v) > 100:
            raise ValueError("From location must be less than 100 characters")
        return v

    @field_validator('to_location')
    @classmethod
    def validate_to_location(cls, v):
        if v is not None and len(v) > 100:
            raise ValueError("To location must be less than 100 characters")
        return v

    @field_validator('passengers')
    @classmethod
    def validate_passengers(cls, v):
        if v is not None:
            if v < 1:
                raise ValueError("Passengers must be at least 1")
            if v > 10:
                raise ValueError("Passengers cannot exceed 10")
        return v

    @field_validator('trip')
    @classmethod
    def validate_trip(cls, v):
        if v is not None and not re.match(TRIP_PATTERN, v):
            raise ValueError("Trip type must be 'One-Way' or 'Round-Trip'")
        return v

    @field_validator('search_context')
    @classmethod
    def validate_search_context(cls, v):
        if v is not None and len(v) > 500:
            raise ValueError("Search context must be less than 500 characters")
        return v

    def to_filters(self) -> TravelFilterSet:
        """Defined fields only, keyed and formatted as in the filter set"""
        filters = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("fromDate", "toDate"):
            if key in filters:
                filters[key] = filters[key].isoformat()
        return filters


class LocationExtraction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    location: str = Field(..., max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    latitude: Optional[str] = Field(None, pattern=COORDINATE_PATTERN)
    longitude: Optional[str] = Field(None, pattern=COORDINATE_PATTERN)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    @field_validator('location')
    @classmethod
    def validate_location(cls, v):
        if not v.strip():
            raise ValueError("Location name is required")
        return v


class TravelAdvice(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    response: str = Field(..., max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    recommendations: Optional[List[str]] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    warning: Optional[str] = Field(None, max_length=200)

    @field_validator('response')
    @classmethod
    def validate_response(cls, v):
        if not v.strip():
            raise ValueError("Response text is required")
        return v

    @field_validator('recommendations')
    @classmethod
    def validate_recommendations(cls, v):
        if v:
            for item in v:
                if len(item) > 200:
                    raise ValueError("Recommendation must be less than 200 characters")
        return v


class GenericAIResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = Field(..., pattern=RESPONSE_TYPE_PATTERN)
    content: str = Field(..., max_length=5000)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    error: Optional[str] = Field(None, max_length=100)
    data: Optional[Any] = None

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Content is required")
        return v
