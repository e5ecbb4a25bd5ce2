"""
Settings and configuration for the Availability Service.
"""

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    default_time_zone: str = Field(
        default="UTC",
        description="Time zone applied to profiles that do not name one",
        validation_alias=AliasChoices("AVAILABILITY_DEFAULT_TIME_ZONE"),
    )
    default_working_hours_start: str = Field(
        default="09:00",
        description="Start of the default working day (HH:MM)",
        validation_alias=AliasChoices("AVAILABILITY_DEFAULT_WORKING_HOURS_START"),
    )
    default_working_hours_end: str = Field(
        default="17:00",
        description="End of the default working day (HH:MM)",
        validation_alias=AliasChoices("AVAILABILITY_DEFAULT_WORKING_HOURS_END"),
    )
    default_buffer_minutes: int = Field(
        default=15,
        description="Buffer before and after generated slots, in minutes",
        validation_alias=AliasChoices("AVAILABILITY_DEFAULT_BUFFER_MINUTES"),
    )
    max_advance_booking_days: int = Field(
        default=90,
        description="Slots starting further ahead than this are not offered",
        validation_alias=AliasChoices("AVAILABILITY_MAX_ADVANCE_BOOKING_DAYS"),
    )
    min_advance_booking_hours: int = Field(
        default=2,
        description="Slots starting sooner than this are not offered",
        validation_alias=AliasChoices("AVAILABILITY_MIN_ADVANCE_BOOKING_HOURS"),
    )
    slot_generation_window_days: int = Field(
        default=30,
        description="Number of days ahead that slots are generated for",
        validation_alias=AliasChoices("AVAILABILITY_SLOT_GENERATION_WINDOW_DAYS"),
    )
    slot_duration_minutes: int = Field(
        default=30,
        description="Length of each generated slot, in minutes",
        validation_alias=AliasChoices("AVAILABILITY_SLOT_DURATION_MINUTES"),
    )
    max_slots_per_query: int = Field(
        default=100,
        description="Upper bound on slots returned per user in a query",
        validation_alias=AliasChoices("AVAILABILITY_MAX_SLOTS_PER_QUERY"),
    )
    cache_enabled: bool = Field(
        default=True,
        description="Cache availability query results",
        validation_alias=AliasChoices("AVAILABILITY_CACHE_ENABLED"),
    )
    cache_ttl_minutes: int = Field(
        default=15,
        description="Lifetime of cached query results, in minutes",
        validation_alias=AliasChoices("AVAILABILITY_CACHE_TTL_MINUTES"),
    )
    optimization_enabled: bool = Field(
        default=True,
        description="Sort, group and annotate query results with recommendations",
        validation_alias=AliasChoices("AVAILABILITY_OPTIMIZATION_ENABLED"),
    )
    allow_overlapping_slots: bool = Field(
        default=False,
        description="Keep generated slots that overlap another slot of the same profile",
        validation_alias=AliasChoices("AVAILABILITY_ALLOW_OVERLAPPING_SLOTS"),
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the nightly slot regeneration inside the service",
        validation_alias=AliasChoices("AVAILABILITY_SCHEDULER_ENABLED"),
    )
    storage_backend: str = Field(
        default="memory",
        description="Profile and slot storage (memory or sql)",
        validation_alias=AliasChoices("AVAILABILITY_STORAGE_BACKEND"),
    )
    db_url_availability: str = Field(
        default="sqlite://",
        description="Database URL used when storage_backend is sql",
        validation_alias=AliasChoices("DB_URL_AVAILABILITY"),
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias=AliasChoices("LOG_LEVEL"),
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
        validation_alias=AliasChoices("LOG_FORMAT"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
