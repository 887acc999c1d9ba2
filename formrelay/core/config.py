from typing import List, Optional

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "FormRelay"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    # --- Environment & Debug ---
    ENVIRONMENT: str = "local"
    DEBUG: bool = False  # Default to False for security
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # --- Mail ---
    EMAIL: Optional[str] = None  # Sender and recipient of contact messages
    MAIL_TRANSPORT: str = "ses"
    AWS_REGION: str = "us-east-1"
    SES_ENDPOINT_URL: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[SecretStr] = None

    # --- CORS / Origin policy ---
    DOMAIN: str = Field(
        default="*",
        description="Allowed origin: '*', an exact origin, or '*.example.com'.",
    )
    ALLOWED_HEADERS: List[str] = Field(
        default_factory=lambda: [
            "Content-Type", "Authorization", "X-Api-Key",
            "X-Request-ID", "X-Amz-Date", "X-Amz-Security-Token",
        ],
    )

    # --- Rate Limiting / Proxy ---
    RATE_LIMIT_MAX_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0
    RATE_LIMIT_SWEEP_MULTIPLE: float = 2.0
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = 300.0  # 0 disables the sweep task
    TRUSTED_PROXIES: List[str] = Field(
        default_factory=lambda: ["127.0.0.1", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"],
        description="CIDR ranges of trusted reverse proxies for X-Forwarded-For",
    )

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @field_validator("DOMAIN", mode="before")
    @classmethod
    def default_domain(cls, v: Optional[str]) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "*"
        return v.strip()

    @field_validator("MAIL_TRANSPORT", mode="after")
    @classmethod
    def validate_mail_transport(cls, v: str) -> str:
        v = v.lower()
        if v not in ("ses", "smtp"):
            raise ValueError("MAIL_TRANSPORT must be 'ses' or 'smtp'")
        return v

    @field_validator("RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS", mode="after")
    @classmethod
    def validate_positive(cls, v, info: ValidationInfo):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v


settings = Settings()


def get_settings() -> Settings:
    """Read configuration for the current invocation.

    Environment changes are picked up without a process restart; tests
    replace this dependency with a fixed ``Settings`` value.
    """
    return Settings()
