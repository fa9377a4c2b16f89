"""
Configuration settings for the mirror administration tool.

Uses pydantic-settings for environment variable management.
"""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mirroradmin import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    VERSION: str = __version__
    LOG_LEVEL: str = Field(default="WARNING")
    LOG_FORMAT: str = Field(default="console")

    # Redis
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: str = Field(default="")

    @property
    def REDIS_URL(self) -> str:
        """Construct Redis connection URL."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Running redirector daemon
    PID_FILE: Path = Field(default=Path("/run/mirrorbits/mirrorbits.pid"))

    # External editor used by the edit command
    EDITOR: str = Field(default="")

    # GeoIP2 databases used when adding a mirror
    GEOIP_DATABASE_PATH: Path = Field(default=Path("/usr/share/GeoIP"))
    GEOIP_CITY_DATABASE: str = Field(default="GeoLite2-City.mmdb")
    GEOIP_ASN_DATABASE: str = Field(default="GeoLite2-ASN.mmdb")

    # External scanner program (scan/refresh)
    SCANNER_COMMAND: str = Field(default="")
    SCANNER_TIMEOUT: int = Field(default=0)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
