from typing import Optional, List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Project information
    PROJECT_NAME: str = "Sourcebook Backend"
    VERSION: str = "0.1.0"
    DESCRIPTION: str = "Notebook sources backend with external processing pipeline"
    SERVICE_NAME: str = "sourcebook-backend"

    # Server configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000
    DEBUG: bool = False

    # Database configuration
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_POOL_OVERFLOW: int = 10
    DATABASE_POOL_TIMEOUT: int = 10  # Connection acquisition timeout
    DATABASE_ECHO: bool = False
    DATABASE_QUERY_TIMEOUT: int = 30  # Statement timeout in seconds

    # Redis configuration (rate limiting is disabled when unset)
    REDIS_URL: Optional[str] = None

    # Authentication settings (tokens are issued by the auth provider)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # API settings
    API_V1_STR: str = "/api/v1"
    BACKEND_CORS_ORIGINS: List[str] = ["*"]
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Workflow engine webhooks
    DOCUMENT_PROCESSING_WEBHOOK_URL: Optional[str] = None
    ADDITIONAL_SOURCES_WEBHOOK_URL: Optional[str] = None
    WEBHOOK_AUTH_TOKEN: Optional[str] = None
    WEBHOOK_TIMEOUT_SECONDS: float = 15.0
    # Shared secret the workflow engine presents on callbacks; unchecked when unset
    WEBHOOK_CALLBACK_TOKEN: Optional[str] = None

    # S3-compatible object storage
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_REGION: str = "us-east-1"
    S3_SOURCES_BUCKET: str = "sources"
    SIGNED_URL_EXPIRES_SECONDS: int = 3600

    # Embedding settings
    EMBEDDING_DIMENSION: int = 1536
    MAX_SIMILARITY_RESULTS: int = 10

    # Source pipeline settings
    MAX_NOTEBOOKS_PER_USER: int = 100
    # Processing sources untouched for longer are failed by the sweep; unset disables it
    SOURCE_STALE_AFTER_MINUTES: Optional[int] = None

    # Rate limiting
    RATE_LIMIT_DEFAULT: str = "300/hour"

    # Request settings
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
