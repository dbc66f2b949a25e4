from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Bypasses RLS; used by webhooks and admin flows

    # JWT (HS256, issued by this service)
    jwt_secret: str = "fallback-secret-for-development"
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = 7
    auth_cookie_name: str = "auth-token"

    # Invitations
    invite_link_expiry_days: int = 7
    invitation_expiry_days: int = 30

    # Anthropic
    anthropic_api_key: Optional[str] = None
    claude_model: str = "claude-sonnet-4-20250514"

    # GitHub (OAuth app + target repository for AI fixes)
    github_client_id: Optional[str] = None
    github_client_secret: Optional[str] = None
    github_webhook_secret: Optional[str] = None
    github_repo_owner: str = ""
    github_repo_name: str = ""
    github_base_branch: str = "main"

    # Twilio
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    # Resend
    resend_api_key: Optional[str] = None
    resend_from_email: str = "This is Me <invites@thisisme.app>"

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_id: Optional[str] = None

    # VAPI
    vapi_session_ttl_minutes: int = 30
    vapi_log_buffer_size: int = 100

    # App
    app_name: str = "thisisme-backend"
    app_url: str = "http://localhost:3000"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def github_repository(self) -> str:
        return f"{self.github_repo_owner}/{self.github_repo_name}"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


settings = Settings()
