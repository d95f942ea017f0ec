from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "settlement-relay"
    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # In unit tests / CI we avoid long startup retries against external deps.
    ENSURE_EXTERNAL_DEPS_ON_STARTUP: bool = True

    ADMIN_TOKEN: str = "change-me-admin-token"
    AUTH_DISABLED: bool = False

    DATABASE_URL: str

    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    # Queue transport behind the gateway. Remote sends go to a second Redis.
    QUEUE_GATEWAY: str = "redis"
    QUEUE_REDIS_URL: str = "redis://localhost:6379/1"
    REMOTE_QUEUE_REDIS_URL: str | None = None

    DISPATCH_DEFAULT_ENVIRONMENT: str = "remote"  # local | remote
    REMOTE_QUEUE_HOST: str = "192.168.2.170"

    STATUS_LISTENER_ENABLED: bool = True
    # In-process threads from the API; set false when Celery beat drives polling.
    STATUS_LISTENER_IN_PROCESS: bool = True
    STATUS_QUEUES: str = "status_response_queue,error_notification_queue,processing_status_queue,audit_logs_queue"
    STATUS_QUEUES_DISABLED: str = ""
    STATUS_POLL_INTERVAL_S: float = 5.0
    STATUS_MAX_FAILURES: int = 3
    STATUS_RECEIVE_TIMEOUT_MS: int = 1000
    STATUS_RESTART_DELAY_S: float = 1.0

    # Fixed party identifiers written into outbound instructions.
    SETTLEMENT_FROM_BIC: str = "SAFMXXXXXXX"
    SETTLEMENT_TO_BIC: str = "DSTXTZTZXXX"
    SETTLEMENT_MARKET_ID: str = "SAFM"
    SETTLEMENT_DEPOSITORY_BIC: str = "DSTXTZTZ"
    SETTLEMENT_RECEIVING_DEPOSITORY_BIC: str = "SAFMXXXX"
    PLEDGE_FROM_BIC: str = "TANZTZTXCSD"
    PLEDGE_TO_BIC: str = "DSTXTZTZXXX"
    PLEDGE_ACCOUNT_ISSUER: str = "BANK OF TANZANA"

    class Config:
        env_file = ".env"
        extra = "ignore"


def split_csv(value: str | None) -> list[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


settings = Settings()
