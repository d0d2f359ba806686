from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Edge handlers write with this key

    # Storage buckets
    vault_bucket: str = "vault"
    media_bucket: str = "generated-media"
    audio_bucket: str = "audio"

    # Chunked archive uploads
    archive_path_prefix: str = "raw/openai_exports"
    archive_max_chunks: int = 400  # 5MB chunks -> 2GB
    archive_max_bytes: int = 2000 * 1024 * 1024

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_currency: str = "usd"

    # AI providers
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1"
    ai_gateway_api_key: Optional[str] = None
    perplexity_api_url: str = "https://api.perplexity.ai"
    perplexity_api_key: Optional[str] = None
    video_api_url: str = "https://api.runwayml.com/v1"
    video_api_key: Optional[str] = None
    image_model: str = "google/gemini-2.5-flash-image-preview"

    # Text-to-speech
    elevenlabs_api_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "EXAVITQu4vr4xnSDxMaL"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    # SMS
    twilio_api_url: str = "https://api.twilio.com/2010-04-01"
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None

    # Inbound webhooks
    workflow_webhook_secret: Optional[str] = None
    lindy_webhook_secret: Optional[str] = None

    # Outbound HTTP
    http_timeout_seconds: float = 60.0

    # App
    app_name: str = "edge-functions"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
