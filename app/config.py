from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Security
    SECRET_KEY: str = "change_this_later"
    ENVIRONMENT: str = "development"
    DEV_MODE: bool = True  # Modo desenvolvimento (permite token "test")

    # Sessão via cookie (JWT assinado pelo backend)
    JWT_SECRET: str = ""  # Se vazio, usa SECRET_KEY
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MIN: int = 60 * 24 * 30
    SESSION_COOKIE_NAME: str = "hydrate_session"

    # API
    API_PREFIX: str = "/api"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Chaves de proteção para endpoints internos (vazio = aberto)
    WORKER_SECRET: str = ""
    ADMIN_API_KEY: str = ""

    # Redis (para Celery, rate limiting e guard do LLM)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_PREFIX: str = "hydrate:"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    JOB_POLL_SECONDS: float = 15.0
    JOB_CLEANUP_SECONDS: float = 600.0

    # Rate Limiting por IP (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: Optional[str] = None  # Se vazio, usa REDIS_URL
    RATE_LIMIT_PER_IP: str = "60/minute"

    # Limites diários por usuário
    DAILY_LIMIT_IMAGE_UPLOADS: int = 20
    DAILY_LIMIT_TEXT_DESCRIPTIONS: int = 20
    DAILY_LIMIT_MANUAL_ADDS: int = 30

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_VISION_MODEL: str = "gpt-4o-mini"
    OPENAI_BARCODE_MODEL: str = "gpt-4o"
    OPENAI_TEXT_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT: float = 15.0

    # Guard do LLM (circuit breaker + requisições simultâneas)
    LLM_MAX_USER_IN_FLIGHT: int = 1
    LLM_MAX_TOTAL_IN_FLIGHT: int = 200
    LLM_CIRCUIT_THRESHOLD: int = 10
    LLM_CIRCUIT_WINDOW_SECONDS: int = 60
    LLM_CIRCUIT_RESET_SECONDS: int = 30

    # Google Vision (detecção de código de barras)
    GOOGLE_VISION_API_KEY: str = ""
    GOOGLE_VISION_URL: str = "https://vision.googleapis.com/v1/images:annotate"
    VISION_TIMEOUT: float = 10.0

    # Object storage (Supabase Storage)
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    STORAGE_BUCKET: str = "water-images"
    UPLOAD_MAX_RETRIES: int = 2
    UPLOAD_RETRY_DELAY_SECONDS: float = 1.0

    # Defaults de usuário
    DEFAULT_TIMEZONE: str = "America/New_York"
    DEFAULT_DAILY_GOAL: float = 64.0

    # Retenção e histórico
    RETENTION_DAYS: int = 40
    HISTORY_MAX_DAYS: int = 365

    # Fila de jobs
    JOB_BATCH_SIZE: int = 50
    JOB_MAX_BATCHES: int = 100
    JOB_MAX_ATTEMPTS: int = 3
    JOB_COMPLETED_TTL_MINUTES: int = 60
    JOB_ERROR_TTL_MINUTES: int = 180
    JOB_PENDING_TTL_MINUTES: int = 180
    JOB_STUCK_MINUTES: int = 10

    # Limiares exibidos no painel admin
    ADMIN_COMPLETED_OLD_HOURS: int = 5
    ADMIN_ERROR_OLD_HOURS: int = 4
    ADMIN_PENDING_OLD_HOURS: int = 24

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


settings = Settings()
