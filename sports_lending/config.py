"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./sports_lending.db"

    # Service
    service_name: str = "sports-lending"
    log_level: str = "INFO"

    # Loan rules
    min_loan_minutes: int = 5
    max_loan_minutes: int = 480
    default_loan_minutes: int = 60

    # Trust and suspension rules
    default_trust_score: float = 50.0
    suspension_penalty_factor: float = 0.5
    first_offence_warning_threshold: int = 3
    repeat_offence_warning_threshold: int = 1

    # Notification webhook (empty disables outbound delivery)
    notification_webhook_url: str = ""

    # HTTP Client
    http_timeout_seconds: float = 5.0
    webhook_max_retries: int = 5
    webhook_backoff_base: float = 1.0  # Exponential backoff base in seconds


settings = Settings()
