"""
Configuration management for albatross-gate
Environment-based configuration
"""
from datetime import timedelta
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Request signing
    signing_secret: Optional[str] = None
    signature_header: str = "Worker-Token"
    timestamp_window_seconds: int = 120

    # Range lookup
    provider_ranges_file: Optional[str] = None

    # Caller side
    worker_url: str = "http://localhost:8080/api/check"
    client_timeout_s: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_signing_secret(self) -> bytes:
        """Shared secret as bytes; empty when signing is not configured."""
        return (self.signing_secret or "").encode("utf-8")

    def signing_enabled(self) -> bool:
        return bool(self.signing_secret)

    def get_timestamp_window(self) -> timedelta:
        return timedelta(seconds=self.timestamp_window_seconds)


# Global settings instance
settings = Settings()
