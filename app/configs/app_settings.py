from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional
from app.custom_error import ConfigurationError

# Values are read from the system environment first, then from ".env" (relative to the CWD of the process), then the defaults below.
# Every credential is Optional here so that a missing one surfaces as a descriptive 500 from the handler that needs it,
# instead of the whole process refusing to import.


class Settings(BaseSettings):
    # Supabase
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Flutterwave secret key (verify endpoint) and the shared secret sent back in the "verif-hash" header
    FLUTTERWAVE_SECRET_KEY: Optional[str] = None
    FLUTTERWAVE_HASH: Optional[str] = None

    # Flutterwave v4 client credentials (checkout initiation)
    FLUTTERWAVE_CLIENT_ID: Optional[str] = None
    FLUTTERWAVE_CLIENT_SECRET: Optional[str] = None

    FLUTTERWAVE_API_URL: str = "https://api.flutterwave.com/v3"
    FLUTTERWAVE_ORCHESTRATION_URL: str = "https://developersandbox-api.flutterwave.com"
    FLUTTERWAVE_TOKEN_URL: str = "https://idp.flutterwave.com/realms/flutterwave/protocol/openid-connect/token"

    # upper bound for every outbound Flutterwave call, in seconds
    FLUTTERWAVE_TIMEOUT_SECONDS: float = 15.0

    # domains
    APP_BASE_URL: str = "http://127.0.0.1:7357"

    # API Settings
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        # no mutation after startup
        frozen = True

    @field_validator(
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "FLUTTERWAVE_SECRET_KEY",
        "FLUTTERWAVE_HASH",
        "FLUTTERWAVE_CLIENT_ID",
        "FLUTTERWAVE_CLIENT_SECRET",
        mode="before",
    )
    @classmethod
    def blank_as_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("FLUTTERWAVE_TIMEOUT_SECONDS")
    @classmethod
    def timeout_must_be_bounded(cls, value: float) -> float:
        if not value > 0 or value == float("inf"):
            raise ValueError("FLUTTERWAVE_TIMEOUT_SECONDS must be a finite positive number")
        return value

    def require(self, name: str) -> str:
        """Return a configured value or fail with a descriptive 500"""
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(f"Missing {name} configuration")
        return value


# Importing this module runs Settings() once per process; every other module shares the cached instance.
settings = Settings()


def get_settings() -> Settings:
    """Dependency function to get the process-wide settings"""
    return settings
