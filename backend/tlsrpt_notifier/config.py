from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Application
    app_name: str = "TLS-RPT Notifier"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # Empty disables file logging
    log_json: bool = False  # Enable JSON logging for production
    enable_request_logging: bool = True

    # Alerting - Email (SMTP)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    from_address: str = ""
    recipient: str = ""  # Comma-separated list of alert recipients
    email_cooldown: int = 3600  # Seconds between two alert emails

    # Alert template (defaults to the bundled alert-email.html)
    template_path: str = ""

    @field_validator('email_cooldown')
    @classmethod
    def validate_cooldown(cls, v):
        if v < 0:
            raise ValueError("email_cooldown must not be negative")
        return v

    @property
    def recipients(self) -> List[str]:
        """Parse comma-separated recipients from the RECIPIENT variable"""
        return [addr.strip() for addr in self.recipient.split(',') if addr.strip()]

    @property
    def mail_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_username)

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
