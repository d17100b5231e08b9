from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_env: str = Field(
        ...,
        description="Application environment (development, staging, production)",
    )

    database_url: str = Field(
        ...,
        description="PostgreSQL connection string",
    )

    redis_url: str = Field(
        ...,
        description="Redis connection string (per-letter generation locks)",
    )

    s3_endpoint_url: str = Field(
        ...,
        description="S3-compatible endpoint URL",
    )
    s3_access_key: str = Field(
        ...,
        description="S3 access key",
    )
    s3_secret_key: str = Field(
        ...,
        description="S3 secret key",
    )
    s3_bucket_name: str = Field(
        ...,
        description="S3 bucket name for rendered letters",
    )
    s3_region: str = Field(
        default="auto",
        description="S3 region (use 'auto' for Cloudflare R2)",
    )

    log_dir: str = Field(
        default="./logs",
        description="Directory for log files",
    )

    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    openrouter_api_key: str | None = Field(
        default=None,
        description="API key for the text-generation provider",
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Chat-completions compatible provider base URL",
    )
    default_model: str = Field(
        default="gpt-3.5-turbo",
        description="Model id (from the allow-list) used when none is selected",
    )
    generation_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound on a single provider call",
    )
    generation_max_tokens: int = Field(
        default=800,
        ge=1,
        description="max_tokens sent to the provider",
    )
    generation_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature sent to the provider",
    )
    generation_lock_ttl_seconds: int = Field(
        default=120,
        ge=1,
        description="TTL of the per-letter generation lock",
    )

    @model_validator(mode="after")
    def _lock_outlives_generation(self) -> "Settings":
        # The lock is held across the provider call
        if self.generation_lock_ttl_seconds <= self.generation_timeout_seconds:
            raise ValueError(
                "generation_lock_ttl_seconds must be greater than generation_timeout_seconds"
            )
        return self


def get_settings() -> Settings:
    return Settings()
