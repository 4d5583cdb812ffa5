from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    BUSINESS_NAME: str = "Creator HQ"
    SITE_URL: str = "http://localhost:3000"

    DATABASE_URL: str | None = None

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_CURRENCY: str = "usd"

    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "bookings@creatorhq.app"

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/calendar/callback"
    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
    OAUTH_STATE_SECRET: str | None = None
    OAUTH_STATE_MAX_AGE_SECONDS: int = 600

    SIDE_EFFECT_TIMEOUT_SECONDS: float = 5.0
    SIDE_EFFECT_MAX_WORKERS: int = 8
    BOOKING_MAX_DURATION_MINUTES: int = 480


settings = Settings()
