from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - used by the SQL record store
    database_url: str = Field(
        default="sqlite:///./planner.db",
        alias="DATABASE_URL"
    )

    # Which record store backs the planning grid: "sql" (local tables) or "http" (PMS API)
    record_store_backend: str = Field(default="sql", alias="RECORD_STORE_BACKEND")

    # ==============================================
    # PMS Record API (room types, rate plans, availability, rates)
    # ==============================================
    pms_api_base_url: str = Field(default="http://localhost:3000/api", alias="PMS_API_BASE_URL")
    pms_api_token: str = Field(default="", alias="PMS_API_TOKEN")
    pms_timeout_seconds: int = Field(default=20, alias="PMS_TIMEOUT_SECONDS")

    # ==============================================
    # Channex Integration Settings (Server-Side Only!)
    # ==============================================
    # Base URL for Channex API (staging vs production)
    channex_base_url: str = Field(
        default="https://staging.channex.io/api/v1",
        alias="CHANNEX_BASE_URL"
    )
    channex_api_key: str = Field(default="", alias="CHANNEX_API_KEY")
    channex_timeout_seconds: int = Field(default=20, alias="CHANNEX_TIMEOUT_SECONDS")

    # ==============================================
    # Planning grid rules
    # ==============================================
    # Number of store operations issued concurrently per batch on Save
    reconcile_batch_size: int = Field(default=10, alias="RECONCILE_BATCH_SIZE")

    # Availability domain (whole rooms)
    availability_min: int = Field(default=1, alias="AVAILABILITY_MIN")
    availability_max: int = Field(default=12, alias="AVAILABILITY_MAX")

    # Widest date window a grid may be loaded for
    planning_max_range_days: int = Field(default=366, alias="PLANNING_MAX_RANGE_DAYS")

    # CORS - comma-separated list of frontend origins
    allowed_origins: str = Field(default="http://localhost:5173", alias="ALLOWED_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    @field_validator('reconcile_batch_size')
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RECONCILE_BATCH_SIZE must be at least 1")
        return v

    @field_validator('record_store_backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("sql", "http"):
            raise ValueError("RECORD_STORE_BACKEND must be 'sql' or 'http'")
        return v

    @model_validator(mode="after")
    def validate_availability_bounds(self):
        if self.availability_min > self.availability_max:
            raise ValueError("AVAILABILITY_MIN cannot exceed AVAILABILITY_MAX")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin:
                origins.append(origin)
        return origins or ["http://localhost:5173"]

    @property
    def has_channex_config(self) -> bool:
        """Check if the Channex API key is present"""
        return bool(self.channex_api_key)

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
