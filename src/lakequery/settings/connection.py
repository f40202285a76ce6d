from typing import Optional

import pytz
from pydantic import Field, SecretStr, field_validator, model_validator

from .base import LQBaseSettings


class ConnectionSettings(LQBaseSettings):
    """Connection and execution settings for one remote engine.

    Environment variables use the ``LAKEQUERY_`` prefix, e.g.
    ``LAKEQUERY_BASE_URL``, ``LAKEQUERY_AUTH_TOKEN``, ``LAKEQUERY_PAGE_SIZE``.
    """

    base_url: str = Field(
        ...,
        description="Scheme, host and port of the remote engine, e.g. https://engine.example.com:9047"
    )
    api_path: str = Field(
        default="/api/v3",
        description="Path prefix of the REST job API"
    )

    auth_token: Optional[SecretStr] = Field(
        default=None,
        description="Personal access token sent as a Bearer token"
    )
    username: Optional[str] = Field(default=None, description="User for password login")
    password: Optional[SecretStr] = Field(default=None, description="Password for password login")
    login_path: str = Field(
        default="/apiv2/login",
        description="Path of the login endpoint used with username/password"
    )

    page_size: int = Field(
        default=500,
        ge=1,
        le=500_000,
        description="Rows requested per results page"
    )
    poll_base_interval: float = Field(
        default=0.2,
        gt=0.0,
        description="First delay between job status polls in seconds"
    )
    poll_max_interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Cap for the delay between job status polls in seconds"
    )
    poll_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the poll delay after each non-terminal status"
    )
    query_timeout_seconds: float = Field(
        default=600.0,
        gt=0.0,
        description="Wall-clock budget for one execution, measured from submit"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Connect/read timeout of a single HTTP request"
    )

    pool_connections: int = Field(default=10, ge=1, le=100)
    pool_maxsize: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum open connections per host shared by all executions"
    )
    verify_ssl: bool = Field(default=True)

    time_zone: str = Field(
        default="UTC",
        description="Zone assumed for remote timestamps that carry no offset"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("api_path", "login_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @field_validator("time_zone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate that the timezone is valid."""
        try:
            pytz.timezone(v)
            return v
        except pytz.exceptions.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}. Use pytz timezone names like 'UTC' or 'US/Central'")

    @model_validator(mode="after")
    def validate_settings(self) -> "ConnectionSettings":
        if self.poll_max_interval < self.poll_base_interval:
            raise ValueError(
                f"poll_max_interval ({self.poll_max_interval}) must be >= "
                f"poll_base_interval ({self.poll_base_interval})"
            )
        has_password = self.username is not None or self.password is not None
        if self.auth_token is not None and has_password:
            raise ValueError("Configure either auth_token or username/password, not both")
        if has_password and (not self.username or self.password is None):
            raise ValueError("Password authentication requires both username and password")
        return self

    @property
    def api_url(self) -> str:
        return f"{self.base_url}{self.api_path}"

    @property
    def uses_password_login(self) -> bool:
        return self.username is not None
