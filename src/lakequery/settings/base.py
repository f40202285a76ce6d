from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LQBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LAKEQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__"
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retry attempts for each transient HTTP failure"
    )
    retry_initial_delay: float = Field(
        default=0.5,
        ge=0.0,
        le=60.0,
        description="Delay before the first retry in seconds; doubles on each further retry"
    )
    retry_max_delay: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Upper bound for the delay between retries in seconds"
    )
