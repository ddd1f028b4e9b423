"""
Configuration for the JSON:API store.

Uses pydantic-settings for environment variable loading
(prefix ``JSONAPI_STORE_``).
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreSettings(BaseSettings):
    """Connection settings loaded from environment."""

    # API location
    base_url: str = Field(default="", description="Prefix for every resource URL")

    # Request defaults
    content_type: str = Field(default="application/vnd.api+json", description="Request Content-Type")
    accept: str = Field(default="application/json", description="Request Accept header")
    extra_headers: dict[str, str] = Field(default_factory=dict, description="Headers sent on every request")

    # Transport
    timeout: float = Field(default=30.0, description="Request timeout seconds")

    model_config = {"env_prefix": "JSONAPI_STORE_", "frozen": True}

    @property
    def default_headers(self) -> dict[str, str]:
        """Headers merged into every request."""
        return {
            "Content-Type": self.content_type,
            "Accept": self.accept,
            **self.extra_headers,
        }
