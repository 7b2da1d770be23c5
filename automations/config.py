"""Automations configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AutomationSettings(BaseSettings):
    environment: str = "development"
    api_url: str = "http://localhost:5000/api"
    frontend_url: str = "http://localhost:3000"
    api_token: str = ""
    workspace_id: str = ""
    request_timeout_seconds: float = 30.0
    oauth_poll_interval_seconds: float = 0.5
    oauth_timeout_seconds: float = 300.0
    oauth_popup_width: int = 600
    oauth_popup_height: int = 700
    log_level: str = "INFO"

    model_config = {"env_prefix": "AUTOMATIONS_", "env_file": ".env", "extra": "ignore"}

    def public_page_url(self, slug: str) -> str:
        """Live URL of a published landing page."""
        return f"{self.frontend_url.rstrip('/')}/p/{slug.strip('/')}"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = AutomationSettings()
