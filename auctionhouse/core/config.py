from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_POSTGRES_SCHEMES = {"postgres", "postgresql"}
_POSTGRES_DRIVERS = {"psycopg", "asyncpg"}


def _sqlalchemy_database_url(value: str) -> str:
    """Route bare postgres URLs through psycopg and pin sessions to a writable primary."""

    scheme, separator, remainder = value.partition("://")
    dialect, _, driver = scheme.lower().partition("+")
    if not separator or dialect not in _POSTGRES_SCHEMES:
        return value
    if driver not in _POSTGRES_DRIVERS:
        driver = "psycopg"

    location, _, query = remainder.partition("?")
    params = dict(parse_qsl(query, keep_blank_values=True))
    params.setdefault("target_session_attrs", "read-write")
    return f"postgresql+{driver}://{location}?{urlencode(params)}"


_DEFAULT_RETRY_DELAYS = (0.01, 0.02, 0.05, 0.1)


def _retry_delays(raw: Any) -> list[float]:
    """Accept "0.01,0.05" from the environment or a list from code; blank means defaults."""

    if raw is None or raw == "" or raw == []:
        return list(_DEFAULT_RETRY_DELAYS)
    entries = raw.split(",") if isinstance(raw, str) else raw
    if not isinstance(entries, (list, tuple)):
        raise ValueError("retry delays must be a comma-separated string or a list of seconds")

    delays: list[float] = []
    for entry in entries:
        if isinstance(entry, str):
            entry = entry.strip()
            if not entry:
                continue
        try:
            seconds = float(entry)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"retry delay {entry!r} is not a number") from exc
        if seconds < 0:
            raise ValueError(f"retry delay {seconds} must not be negative")
        delays.append(seconds)
    if not delays:
        raise ValueError("at least one retry delay is required")
    return delays


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/auctionhouse.db",
        description="SQLAlchemy compatible database URL",
    )
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds a SQLite connection waits on a locked database before failing",
        gt=0,
    )
    bid_acceptance_timeout_seconds: float = Field(
        default=5.0,
        description="Wall-clock budget for a single bid placement, retries included",
        gt=0,
    )
    bid_max_attempts: int = Field(
        default=8,
        description="Maximum validate-and-commit cycles per bid before giving up on contention",
        ge=1,
    )
    bid_retry_backoff_seconds: list[float] | str = Field(
        default_factory=lambda: list(_DEFAULT_RETRY_DELAYS),
        description="Comma-separated list or array of delays (seconds) between contended bid attempts",
    )
    notification_webhook_url: AnyUrl | str | None = Field(
        default=None,
        description="Endpoint receiving a POST for every accepted bid (unset disables notifications)",
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="HTTP timeout applied to bid notification webhooks",
        gt=0,
    )

    @field_validator("notification_webhook_url", mode="before")
    @classmethod
    def _blank_webhook_disables(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("bid_retry_backoff_seconds", mode="before")
    @classmethod
    def _parse_retry_backoff(cls, value: Any) -> list[float]:
        return _retry_delays(value)

    @property
    def resolved_database_url(self) -> str:
        return _sqlalchemy_database_url(str(self.database_url))

    @property
    def bid_retry_backoff_schedule(self) -> tuple[float, ...]:
        return tuple(float(delay) for delay in self.bid_retry_backoff_seconds) or (0.0,)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
