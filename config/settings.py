"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ─────────────────────────────────────────────────────────
    database_url: str = "sqlite:///./connections.db"

    # ── Security Secrets ──────────────────────────────────────────────────
    token_encryption_key: str = ""    # Fernet key for encrypting OAuth tokens at rest

    # ── OAuth Connectors ─────────────────────────────────────────────────
    oauth_redirect_base: str = "http://localhost:8000"  # base URL for OAuth callbacks
    http_timeout_seconds: float = 10.0

    github_client_id: str = ""
    github_client_secret: str = ""

    twitter_consumer_key: str = ""
    twitter_consumer_secret: str = ""

    debug: bool = False

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def callback_url(self, provider_id: str) -> str:
        """Return the OAuth callback URL registered for *provider_id*."""
        return f"{self.oauth_redirect_base.rstrip('/')}/connect/{provider_id}/callback"


config = Settings()
