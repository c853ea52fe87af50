from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TRIP_TYPES = ("One-Way", "Round-Trip")


class Settings(BaseSettings):
    # Search input screening
    SEARCH_INPUT_MIN_LENGTH: int = 3
    SEARCH_INPUT_MAX_LENGTH: int = 500
    SEARCH_INPUT_MIN_WORDS: int = 5

    # AI response limits
    AI_RESPONSE_MAX_LENGTH: int = 10000
    FILTER_KEY_MAX_LENGTH: int = 50
    FILTER_VALUE_MAX_LENGTH: int = 200

    # Default search filters
    DEFAULT_FROM_LOCATION: str = "San Francisco SFO"
    DEFAULT_TO_LOCATION: str = "London LHR"
    DEFAULT_PASSENGERS: int = 1
    DEFAULT_TRIP_TYPE: str = "Round-Trip"
    DEFAULT_DEPARTURE_DAYS: int = 7  # days from today
    DEFAULT_RETURN_DAYS: int = 14

    # Rule-based extractor defaults
    EXTRACTOR_DEFAULT_FROM: str = "San Francisco"
    EXTRACTOR_DEFAULT_TO: str = "London"

    # GenAI
    ENABLE_AI_ENHANCEMENT: bool = True
    TRAVEL_EXTRACTION_PROMPT_PATH: str = str(
        Path(__file__).parents[1] / "prompts" / "travel_extraction_prompt.txt"
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator('DEFAULT_TRIP_TYPE')
    @classmethod
    def validate_trip_type(cls, v):
        """Only the two supported trip types are accepted"""
        if v not in TRIP_TYPES:
            raise ValueError(f"DEFAULT_TRIP_TYPE must be one of {', '.join(TRIP_TYPES)}")
        return v

    @field_validator('DEFAULT_PASSENGERS')
    @classmethod
    def validate_passengers(cls, v):
        if v < 1:
            raise ValueError("DEFAULT_PASSENGERS must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parents[3] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
