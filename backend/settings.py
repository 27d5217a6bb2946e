from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Campus Navigation API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins
    cors_origins: str = "*"
    google_maps_api_key: str = ""  # Routes API + Directions API key (console.cloud.google.com)

    directions_timeout_seconds: float = 10.0
    directions_rate_limit: str = "30/minute"  # Per client IP, provider-backed endpoints only
    debounce_ms: int = 500  # Quiet period before a changed route request is fetched
    recalc_distance_m: float = 50.0  # Off-route distance that triggers recalculation
    shuttle_timezone: str = "America/Toronto"  # Timetable local time (Montreal)


def get_settings() -> Settings:
    return Settings()
