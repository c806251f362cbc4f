"""
Record store settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Record store settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_prefix="RECORD_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./record_store.db"
    sql_echo: bool = False  # Log every SQL statement (development only)

    # Environment
    environment: str = "development"
    debug: bool = True

    # Cascade propagation
    # Backstop for relation graphs deeper than any sane schema; the visited
    # set already stops genuine cycles.
    cascade_max_depth: int = 32

    # Pagination
    max_page_size: int = 500

    def validate_production(self) -> list[str]:
        """
        Validate settings that must differ in production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")
            if self.sql_echo:
                errors.append("SQL_ECHO must be False in production")
            if self.database_url.startswith("sqlite"):
                errors.append("DATABASE_URL must not point to SQLite in production")

        if self.cascade_max_depth < 1:
            errors.append("CASCADE_MAX_DEPTH must be at least 1")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
