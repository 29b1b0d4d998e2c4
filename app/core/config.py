from pydantic_settings import BaseSettings
from typing import List, Optional, Union
from pydantic import field_validator
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Campaign Pipeline API"

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "campaign_db"
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis Settings (Celery beat broker and default pipeline transport)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Pipeline queue transport (any kombu URL: redis://, amqp://, memory://)
    BROKER_URL: Optional[str] = None
    QUEUE_EXCHANGE: str = "pipeline"
    SCRAPE_QUEUE: str = "jobs.scrape"
    MATCH_QUEUE: str = "jobs.match"
    TAILOR_QUEUE: str = "jobs.tailor"
    QUEUE_CONNECT_MAX_ATTEMPTS: int = 5
    QUEUE_RECONNECT_DELAY_SECONDS: float = 1.0
    QUEUE_RECONNECT_MAX_DELAY_SECONDS: float = 30.0

    @property
    def QUEUE_URL(self) -> str:
        return self.BROKER_URL or self.REDIS_URL

    # OpenAI Settings (Analyzer backend)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_REASONING_MODEL: str = "gpt-4o"
    OPENAI_TEMPERATURE: float = 0.2
    OPENAI_TIMEOUT_SECONDS: float = 120.0

    # Analyzer retry budgets
    AI_MAX_ATTEMPTS: int = 3
    AI_RETRY_DELAY_SECONDS: float = 2.0
    AI_INITIAL_MAX_TOKENS: int = 4096
    AI_MAX_TOKENS_CEILING: int = 16384
    AI_MALFORMED_MAX_ATTEMPTS: int = 2

    # Pipeline behaviour
    MATCH_BATCH_SIZE: int = 5
    MATCH_BATCH_TIMEOUT_SECONDS: float = 60.0
    SCRAPER_MAX_IDLE_ATTEMPTS: int = 5
    SCRAPER_MAX_PAGES: int = 10
    SCRAPER_DATE_POSTED_FILTER: str = "Past 24 hours"
    TAILOR_PREFETCH: int = 1
    TAILOR_MAX_RETRIES: int = 2
    CANCELLATION_POLL_SECONDS: float = 0.0
    CAMPAIGN_COMPLETION_STABLE_POLLS: int = 3
    CAMPAIGN_COMPLETION_POLL_SECONDS: float = 300.0
    FAILED_TAILORING_SWEEP_SECONDS: float = 900.0

    # Document storage
    USE_S3: bool = False
    S3_BUCKET_NAME: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    LOCAL_STORAGE_DIR: str = "generated"

    # Browser scraper
    LINKEDIN_STORAGE_STATE: str = "linkedin_state.json"
    SCRAPER_HEADLESS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
