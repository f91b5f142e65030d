"""
Application settings and configuration management.
"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "sqlite:///./village_carbon.db"

    # JWT Configuration (tokens are issued by the platform's auth service)
    jwt_secret: str = "your-super-secret-jwt-key-change-this-in-production"
    jwt_expiration_hours: int = 24
    jwt_algorithm: str = "HS256"

    # Application Settings
    environment: str = "development"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS Settings
    allowed_origins: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    # Rate Limiting
    enable_rate_limiting: bool = True
    rate_limit_storage_uri: str = "memory://"
    adjust_rate_limit: str = "30/minute"

    # Prometheus Metrics
    enable_metrics: bool = True

    # Transaction listing
    transaction_default_limit: int = 50
    transaction_max_limit: int = 100

    @field_validator("allowed_origins")
    def validate_origins(cls, v):
        """Convert comma-separated origins string to list."""
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @field_validator("log_level")
    def validate_log_level(cls, v):
        """Normalise log level names."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def validate_production_config(self) -> List[str]:
        """Validate production configuration and return list of issues."""
        issues = []

        if self.is_production:
            if self.jwt_secret == "your-super-secret-jwt-key-change-this-in-production":
                issues.append("JWT secret must be changed from default value")

            if len(self.jwt_secret) < 32:
                issues.append("JWT secret should be at least 32 characters long")

            if self.database_url.startswith("sqlite"):
                issues.append("SQLite does not provide row-level locking; use PostgreSQL in production")

            if any("localhost" in origin for origin in self.allowed_origins):
                issues.append("Localhost origins should be removed in production")

            if not self.enable_rate_limiting:
                issues.append("Rate limiting should be enabled in production")

        return issues


# Global settings instance
settings = Settings()
