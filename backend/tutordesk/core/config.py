from functools import lru_cache
import re
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
BOUNDARY_PATTERN = re.compile(r"^([01]?\d|2[0-4]):[0-5]\d$")


def boundary_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class Settings(BaseSettings):
    # Resolve to backend/.env so the library picks up the same file from any cwd.
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="TUTORDESK_",
        extra="ignore",
    )

    project_name: str = "TutorDesk"

    database_url: str = f"sqlite:///{Path(__file__).resolve().parents[2] / 'tutordesk.db'}"
    database_echo: bool = False

    morning_start: str = "06:00"
    afternoon_start: str = "12:00"
    evening_start: str = "19:00"
    day_end: str = "24:00"

    default_restriction_policy: Literal["unrestricted", "checked"] = "unrestricted"
    availability_missing_record_available: bool = True

    staging_max_pending_changes: int = 500

    @field_validator("morning_start", "afternoon_start", "evening_start", "day_end", mode="before")
    @classmethod
    def validate_boundary(cls, value: str) -> str:
        stripped = str(value).strip()
        if not BOUNDARY_PATTERN.match(stripped) or boundary_to_minutes(stripped) > 24 * 60:
            raise ValueError("Time slot boundary must be in HH:MM 24-hour format")
        return stripped

    @field_validator("default_restriction_policy", mode="before")
    @classmethod
    def normalize_policy(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_boundary_order(self) -> "Settings":
        boundaries = [
            boundary_to_minutes(self.morning_start),
            boundary_to_minutes(self.afternoon_start),
            boundary_to_minutes(self.evening_start),
            boundary_to_minutes(self.day_end),
        ]
        if any(later <= earlier for earlier, later in zip(boundaries, boundaries[1:])):
            raise ValueError("Time slot boundaries must be strictly increasing")
        if self.staging_max_pending_changes < 1:
            raise ValueError("staging_max_pending_changes must be at least 1")
        return self

    def slot_boundaries(self) -> tuple[int, int, int, int]:
        return (
            boundary_to_minutes(self.morning_start),
            boundary_to_minutes(self.afternoon_start),
            boundary_to_minutes(self.evening_start),
            boundary_to_minutes(self.day_end),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
