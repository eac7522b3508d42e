"""
Configuration management using Pydantic models loaded from YAML and the environment.
"""

import json
import os
from datetime import datetime, time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .domain.exceptions import ConfigError
from .domain.models import BusinessHours, DayHours, ScheduleConfig, Weekday

# Environment variables understood on top of the config file
ENV_HOURS = "BUSINESS_HOURS_JSON"
ENV_TIMEZONE = "BUSINESS_TIMEZONE"
ENV_NUMERIC_OVERRIDES = {
    "APPOINTMENT_BUFFER_MINUTES": "buffer_minutes",
    "SLOT_INTERVAL_MINUTES": "slot_interval_minutes",
    "BOOKING_WINDOW_DAYS": "booking_window_days",
}


def default_business_hours() -> Dict[str, Optional[Dict[str, str]]]:
    """The standard week used when no hours are configured."""
    return {
        "monday": {"open": "09:00", "close": "18:00"},
        "tuesday": {"open": "09:00", "close": "18:00"},
        "wednesday": {"open": "09:00", "close": "18:00"},
        "thursday": {"open": "09:00", "close": "19:00"},
        "friday": {"open": "09:00", "close": "19:00"},
        "saturday": {"open": "10:00", "close": "17:00"},
        "sunday": None,
    }


def parse_wall_clock(value: Any) -> time:
    """
    Parse an ``HH:MM`` wall-clock reading.

    YAML 1.1 loads an unquoted ``10:00`` as the sexagesimal integer 600,
    so integers are read back as minutes since midnight.
    """
    if isinstance(value, time):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value < 24 * 60:
            raise ValueError(f"Wall-clock value out of range: {value}")
        return time(hour=value // 60, minute=value % 60)
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%H:%M").time()
        except ValueError:
            raise ValueError(f"Expected HH:MM, got '{value}'") from None
    raise ValueError(f"Expected HH:MM, got {value!r}")


class DayHoursConfig(BaseModel):
    """Opening window for one weekday."""
    open: time
    close: time

    @field_validator("open", "close", mode="before")
    @classmethod
    def validate_wall_clock(cls, value: Any) -> time:
        return parse_wall_clock(value)

    @model_validator(mode="after")
    def validate_order(self) -> "DayHoursConfig":
        """Ensure the day opens before it closes."""
        if self.close <= self.open:
            raise ValueError(f"close ({self.close:%H:%M}) must be later than open ({self.open:%H:%M})")
        return self

    def to_domain(self) -> DayHours:
        return DayHours(open=self.open, close=self.close)


class ScheduleSettings(BaseModel):
    """Scheduling knobs as they appear in config files and the environment."""
    model_config = ConfigDict(extra="forbid")

    hours: Dict[str, Optional[DayHoursConfig]] = Field(
        default_factory=default_business_hours,
        validate_default=True,
    )
    buffer_minutes: int = Field(default=15, ge=0)
    slot_interval_minutes: int = Field(default=30, gt=0)
    booking_window_days: int = Field(default=60, gt=0)
    timezone: Optional[str] = None

    @field_validator("hours", mode="before")
    @classmethod
    def validate_weekday_keys(cls, value: Any) -> Any:
        """Normalise weekday keys and reject names that are not weekdays."""
        if not isinstance(value, Mapping):
            raise ValueError("hours must be a mapping of weekday name to opening window")
        normalized: Dict[str, Any] = {}
        for key, hours in value.items():
            day = Weekday.from_name(str(key))
            normalized[day.name.lower()] = hours
        return normalized

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        """Ensure the timezone is a known IANA identifier."""
        if value is None:
            return None
        value = value.strip()
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: '{value}'") from exc
        return value

    def business_hours(self) -> BusinessHours:
        """Weekdays not listed are closed."""
        return BusinessHours.from_mapping({
            day: (self.hours[day.name.lower()].to_domain() if self.hours.get(day.name.lower()) else None)
            for day in Weekday
        })

    def to_schedule(self) -> ScheduleConfig:
        """
        Build the immutable schedule passed into the core.

        Raises:
            ConfigError: If no timezone has been configured
        """
        if not self.timezone:
            raise ConfigError(
                f"No business timezone configured. Set schedule.timezone in the config "
                f"file or the {ENV_TIMEZONE} environment variable."
            )
        return ScheduleConfig(
            hours=self.business_hours(),
            timezone=self.timezone,
            buffer_minutes=self.buffer_minutes,
            slot_interval_minutes=self.slot_interval_minutes,
            booking_window_days=self.booking_window_days,
        )


class GraphSettings(BaseModel):
    """Microsoft Graph application used to read the business calendar."""
    client_id: str = ""
    tenant_id: str = "common"
    calendar_user: str = "me"  # "me" or a user principal name

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class AppConfig(BaseModel):
    """Application configuration."""
    graph: GraphSettings = Field(default_factory=GraphSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    ledger_path: Path = Path("bookings.json")
    mock_calendar_path: Optional[Path] = None

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Relative paths inside the file are resolved against the file's directory.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            ConfigError: If the file is missing, unreadable or invalid
        """
        if not config_path.exists():
            raise ConfigError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Could not read {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        try:
            config = cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}:\n{exc}") from exc

        return config.with_paths_relative_to(config_path.parent)

    def with_paths_relative_to(self, base: Path) -> "AppConfig":
        updates: Dict[str, Path] = {}
        if not self.ledger_path.is_absolute():
            updates["ledger_path"] = base / self.ledger_path
        if self.mock_calendar_path is not None and not self.mock_calendar_path.is_absolute():
            updates["mock_calendar_path"] = base / self.mock_calendar_path
        return self.model_copy(update=updates) if updates else self


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def environment_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Collect schedule settings from environment variables.

    Empty variables are ignored.

    Raises:
        ConfigError: If BUSINESS_HOURS_JSON is not valid JSON
    """
    overrides: Dict[str, Any] = {}

    raw_hours = environ.get(ENV_HOURS, "").strip()
    if raw_hours:
        try:
            overrides["hours"] = json.loads(raw_hours)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid business hours configuration in {ENV_HOURS}: {exc}") from exc

    for variable, field in ENV_NUMERIC_OVERRIDES.items():
        raw = environ.get(variable, "").strip()
        if raw:
            overrides[field] = raw

    timezone = environ.get(ENV_TIMEZONE, "").strip()
    if timezone:
        overrides["timezone"] = timezone

    return overrides


def load_app_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load the application config.

    An explicitly given path must exist; when falling back to the default
    location a missing file yields the built-in defaults.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def build_schedule(settings: ScheduleSettings, environ: Optional[Mapping[str, str]] = None) -> ScheduleConfig:
    """
    Apply environment overrides to file settings and build the schedule.

    Raises:
        ConfigError: If the merged settings are invalid or incomplete
    """
    environ = os.environ if environ is None else environ

    merged = settings.model_dump(exclude_unset=True)
    merged.update(environment_overrides(environ))

    try:
        resolved = ScheduleSettings(**merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid schedule configuration:\n{exc}") from exc

    try:
        return resolved.to_schedule()
    except ValueError as exc:
        raise ConfigError(f"Invalid schedule configuration: {exc}") from exc


def resolve_schedule_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ScheduleConfig:
    """
    Resolve the schedule from defaults, the YAML file and the environment.

    Args:
        config_path: Optional explicit config file
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        ScheduleConfig instance

    Raises:
        ConfigError: If configuration is missing or malformed
    """
    return build_schedule(load_app_config(config_path).schedule, environ)
