"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    service_name: str = "R2 Signed URL Service"
    service_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"
    cors_origin: str = "*"

    # Storage provider: "r2" (S3-compatible signing) or "appwrite"
    storage_provider: str = "r2"

    # Cloudflare R2 / S3-compatible storage
    r2_account_id: Optional[str] = None
    r2_endpoint: Optional[str] = None  # Overrides the endpoint derived from r2_account_id
    r2_bucket: str = ""
    r2_access_key: Optional[str] = None
    r2_secret_key: Optional[str] = None
    r2_region: str = "auto"  # R2 uses "auto" for region
    r2_verify_objects: bool = False  # HEAD the object before signing a GET

    # Appwrite Storage
    appwrite_endpoint: str = "https://fra.cloud.appwrite.io/v1"
    appwrite_project_id: Optional[str] = None
    appwrite_api_key: Optional[str] = None
    appwrite_bucket_id: str = ""

    # Signed URLs
    signed_url_expiry_seconds: int = 7200  # 2 hours
    expiry_buffer_seconds: int = 300  # Cached URLs are reissued inside this window

    # URL cache
    cache_ttl_seconds: int = 3600
    cache_check_period_seconds: int = 60
    max_cache_keys: int = 5000
    redis_url: Optional[str] = None  # Optional remote tier

    # Batch issuance
    batch_default_size: int = 15
    batch_max_files: int = 500
    batch_delay_ms: int = 50
    batch_max_delay_ms: int = 200
    batch_delay_per_file_ms: int = 10

    # OTP (OTPIQ SMS/WhatsApp provider)
    otpiq_api_key: Optional[str] = None
    otpiq_api_url: str = "https://api.otpiq.com/api/sms"
    otp_channel: str = "whatsapp-sms"
    otp_ttl_seconds: int = 300
    otp_max_entries: int = 10000
    phone_number_pattern: str = r"^964[0-9]{10}$"
    http_timeout_seconds: float = 10.0

    # Rate limiting for OTP endpoints (per client address)
    rate_limit_enabled: bool = True
    otp_send_limit: int = 5
    otp_verify_limit: int = 10
    otp_rate_window_seconds: int = 900  # 15 minutes

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def r2_endpoint_url(self) -> Optional[str]:
        """Explicit endpoint, or the account endpoint derived from R2_ACCOUNT_ID."""
        if self.r2_endpoint:
            return self.r2_endpoint
        if self.r2_account_id:
            return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"
        return None

    @property
    def storage_bucket(self) -> str:
        """Bucket used by the configured storage provider."""
        if self.storage_provider.strip().lower() == "appwrite":
            return self.appwrite_bucket_id
        return self.r2_bucket


# Global settings instance
settings = Settings()
