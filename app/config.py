from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = "dev"
    log_level: str = "INFO"

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 120
    admin_username: str = "admin"
    admin_password: str = "admin123"

    github_token: str = ""
    github_api_base_url: str = "https://api.github.com"
    github_api_timeout_seconds: int = 25

    files_changed_threshold: int = 20
    lines_changed_threshold: int = 500
    critical_paths: str = ""
    allow_synthetic_metrics: bool = False

    rate_limit: str = "20/minute"
    cors_origins: str = "http://localhost:5000,http://127.0.0.1:5000,http://localhost:5173,http://127.0.0.1:5173"


settings = Settings()
