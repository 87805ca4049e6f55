"""
Order Service Configuration Module

Settings for the Kafka consumer, the PostgreSQL store, the in-memory cache
and the lookup API. Loads settings from environment variables (and a local
.env file) with Pydantic validation.

CONFIGURATION SOURCES (priority order):
1. Explicit keyword arguments
2. Environment variables
3. .env file (loaded by python-dotenv)
4. Default values
"""

from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if present (local development)
load_dotenv()


class ServiceConfig(BaseSettings):
    """
    Order service configuration with validation.

    Includes Kafka consumer settings, PostgreSQL database configuration,
    persistence retry policy, cache sizing and HTTP listener settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === KAFKA CONSUMER SETTINGS ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses",
    )

    kafka_topic_orders: str = Field(
        default="orders",
        description="Kafka topic carrying order change events",
    )

    consumer_group_id: str = Field(
        default="orders_group",
        description="Consumer group ID for partition assignment",
    )

    consumer_client_id: str = Field(
        default="order-service",
        description="Consumer client identifier",
    )

    consumer_auto_offset_reset: str = Field(
        default="earliest",
        description="Where to start consuming: earliest or latest",
    )

    enable_auto_commit: bool = Field(
        default=False,
        description="Auto-commit offsets (False = commit only after persist + cache)",
    )

    poll_timeout_s: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Seconds a single poll blocks before the shutdown flag is rechecked",
    )

    # === DATABASE SETTINGS ===
    database_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the postgres_* fields when set",
    )

    postgres_host: str = Field(
        default="localhost",
        description="PostgreSQL host",
    )

    postgres_port: int = Field(
        default=5432,
        description="PostgreSQL port",
    )

    postgres_db: str = Field(
        default="orders",
        description="PostgreSQL database name",
    )

    postgres_user: str = Field(
        default="postgres",
        description="PostgreSQL username",
    )

    postgres_password: str = Field(
        default="postgres",
        description="PostgreSQL password",
    )

    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="SQLAlchemy connection pool size",
    )

    db_connect_timeout_s: int = Field(
        default=3,
        ge=2,
        le=60,
        description="libpq connect_timeout: bound on opening a new connection (libpq minimum is 2)",
    )

    db_pool_timeout_s: float = Field(
        default=2.0,
        gt=0,
        le=60,
        description="Seconds to wait for a free pooled connection before failing",
    )

    db_tcp_user_timeout_ms: int = Field(
        default=10000,
        ge=0,
        description="libpq tcp_user_timeout: drop a connection whose peer stopped acknowledging (0 = OS default)",
    )

    db_create_schema: bool = Field(
        default=True,
        description="Create missing tables at startup",
    )

    # === PROCESSING SETTINGS ===
    persist_max_attempts: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Total persistence attempts per message before giving up",
    )

    retry_backoff_ms: int = Field(
        default=1000,
        ge=1,
        le=60000,
        description="First retry backoff in milliseconds, doubled after every failed attempt",
    )

    persist_timeout_ms: int = Field(
        default=10000,
        ge=0,
        description="statement_timeout for one persistence transaction (0 = none)",
    )

    lookup_timeout_ms: int = Field(
        default=5000,
        ge=1,
        le=60000,
        description="statement_timeout for a store read on the lookup path",
    )

    # === CACHE ===
    cache_capacity: int = Field(
        default=1000,
        ge=0,
        description="Maximum number of orders held in memory (0 disables caching)",
    )

    # === HTTP ===
    http_host: str = Field(
        default="0.0.0.0",
        description="Lookup API bind address",
    )

    http_port: int = Field(
        default=8082,
        ge=1,
        le=65535,
        description="Lookup API port",
    )

    web_enabled: bool = Field(
        default=True,
        description="Serve the browser lookup page at /",
    )

    web_dir: Optional[str] = Field(
        default=None,
        description="Directory with the browser front end (the bundled page when unset)",
    )

    # === LOGGING ===
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: str = Field(
        default="json",
        description="Log output format (json or text)",
    )

    def get_kafka_config(self) -> dict:
        """Get Kafka consumer configuration dictionary."""
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "group.id": self.consumer_group_id,
            "client.id": self.consumer_client_id,
            "auto.offset.reset": self.consumer_auto_offset_reset,
            "enable.auto.commit": self.enable_auto_commit,
        }

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL (psycopg2 driver)."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


def load_config() -> ServiceConfig:
    """Load and validate service configuration."""
    return ServiceConfig()
