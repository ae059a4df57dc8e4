from typing import List, Literal
from pydantic_settings import BaseSettings
from urllib.parse import quote_plus

class Settings(BaseSettings):
    env: str = "local"

    # postgres | sqlite | memory
    storage_backend: Literal["postgres", "sqlite", "memory"] = "sqlite"

    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "storefront"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    sqlite_path: str = ".data/storefront.sqlite"

    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # simulated | live
    payment_gateway: Literal["simulated", "live"] = "simulated"
    payment_timeout_seconds: float = 30.0
    currency: str = "USD"

    cybersource_merchant_id: str = ""
    cybersource_key_id: str = ""
    cybersource_shared_secret: str = ""
    cybersource_host: str = "apitest.cybersource.com"

    mastercard_merchant_id: str = ""
    mastercard_api_password: str = ""
    mastercard_host: str = "test-gateway.mastercard.com"
    mastercard_api_version: str = "100"
    mastercard_checkout_origin: str = "http://localhost:5173/checkout"

    # secondary databases mirrored by the backup queue
    backup_database_urls: List[str] = []
    backup_queue_path: str = ".data/backup_queue.sqlite"
    backup_poll_interval_seconds: float = 3.0
    backup_batch_size: int = 5
    backup_stale_after_seconds: int = 300

    log_level: str = "INFO"

    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    @property
    def database_url(self):
        if self.storage_backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
