"""
Configuration settings for the Keeper League Sync API.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {
        "env_file": [".env", "backend/.env"],
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    # Application Environment
    environment: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3002, description="API port")

    # CORS Configuration
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./keeper_league.db",
        description="Database URL (SQLite for local development)"
    )
    database_echo: bool = Field(default=False, description="Enable SQL query logging")

    # Sleeper API Configuration
    SLEEPER_API_BASE_URL: str = Field(default="https://api.sleeper.app/v1", description="Sleeper API base URL")
    SLEEPER_API_TIMEOUT: int = Field(default=10, description="Sleeper API request timeout in seconds")
    SLEEPER_PLAYERS_TIMEOUT: int = Field(default=60, description="Timeout for the full player catalogue request")
    SLEEPER_MAX_RETRIES: int = Field(default=3, description="Retries for 429/5xx responses")
    SLEEPER_RETRY_DELAY: float = Field(default=1.0, description="Base retry delay in seconds (doubled per attempt)")

    # Redis Configuration
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: Optional[str] = Field(default=None, description="Redis password")
    REDIS_SSL: bool = Field(default=False, description="Enable SSL for Redis connection")
    REDIS_DECODE_RESPONSES: bool = Field(default=True, description="Auto-decode responses to strings")

    # Sync Configuration
    SYNC_THROTTLE_SECONDS: int = Field(default=30, description="Minimum seconds between identical sync requests per caller")
    SYNC_THROTTLE_KEY_PREFIX: str = Field(default="sync:throttle", description="Redis key prefix for sync throttling")
    SYNC_STALE_SECONDS: int = Field(default=3600, description="Age after which a league needs a sync (1 hour)")
    TRANSACTION_WEEK_CAP: int = Field(default=18, description="Transactions are fetched for weeks 0..cap")
    MAX_CHAIN_DEPTH: int = Field(default=10, description="Maximum number of previous seasons followed in a league chain")
    DEFAULT_DRAFT_ROUNDS: int = Field(default=16, description="Draft rounds when the platform does not report them")
    DEFAULT_TRADE_DEADLINE_WEEK: int = Field(default=11, description="Trade deadline week for new keeper settings")
    PLAYER_BATCH_SIZE: int = Field(default=100, description="Players written per database batch")

    # Cron Configuration
    CRON_ENABLED: bool = Field(default=False, description="Run the background league sync job")
    CRON_SYNC_SCHEDULE: str = Field(default="0 */6 * * *", description="Crontab expression for league sync")
    CRON_TIME_BUDGET_SECONDS: int = Field(default=280, description="Total time budget for one cron sync run")
    CRON_SECRET: Optional[str] = Field(default=None, description="Bearer secret required by /api/cron/sync when set")

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins to list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def get_database_url(self) -> str:
        """Get the database URL."""
        return self.database_url

    def get_redis_url(self) -> str:
        """Get the Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
