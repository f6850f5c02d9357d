from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Core
    environment: str = Field(default="dev", alias="ENVIRONMENT")
    app_name: str = Field(default="Transfer Relay", alias="APP_NAME")

    # Payments
    payment_secret: Optional[str] = Field(default=None, alias="PAYMENT_SECRET")
    paid_short_ttl: int = Field(default=60 * 60 * 24, alias="PAID_SHORT_TTL")  # 24h
    plan_bypass: str = Field(default="", alias="PLAN_BYPASS", description="comma separated plan names")

    # Transfers
    transfer_ttl_seconds: int = Field(default=60 * 60 * 24 * 7, alias="TRANSFER_TTL")  # 7d
    metadata_cache_size: int = Field(default=1024, alias="METADATA_CACHE_SIZE")
    list_page_size: int = Field(default=1000, alias="LIST_PAGE_SIZE")
    zip_compress_level: int = Field(default=9, alias="ZIP_COMPRESS_LEVEL")
    presign_ttl_seconds: int = Field(default=900, alias="PRESIGN_TTL")

    # Storage
    storage_provider: str = Field(default="local", alias="STORAGE_PROVIDER", description="blob | s3 | local")
    azure_blob_connection: Optional[str] = Field(default=None, alias="AZURE_BLOB_CONNECTION")
    azure_blob_container: Optional[str] = Field(default=None, alias="AZURE_BLOB_CONTAINER")
    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        alias="S3_ENDPOINT_URL",
        description="e.g., https://<account>.r2.cloudflarestorage.com",
    )
    s3_region: str = Field(default="auto", alias="S3_REGION")
    s3_access_key_id: Optional[str] = Field(default=None, alias="S3_ACCESS_KEY_ID")
    s3_secret_access_key: Optional[str] = Field(default=None, alias="S3_SECRET_ACCESS_KEY")
    s3_force_path_style: bool = Field(default=False, alias="S3_FORCE_PATH_STYLE")
    local_storage_dir: str = Field(default="var/storage", alias="LOCAL_STORAGE_DIR")

    # HTTP
    rate_limit: str = Field(default="100/minute", alias="RATE_LIMIT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    metrics_enabled: bool = Field(default=True, alias="ENABLE_METRICS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        frozen = True

    @property
    def bypass_plans(self) -> Tuple[str, ...]:
        return tuple(p.strip() for p in self.plan_bypass.split(",") if p.strip())

    @property
    def allowed_origins(self) -> Tuple[str, ...]:
        return tuple(o.strip() for o in self.cors_origins.split(",") if o.strip())

    @property
    def payment_secret_bytes(self) -> bytes:
        if not self.payment_secret:
            if self.environment != "dev":
                raise RuntimeError("PAYMENT_SECRET must be set")
            return b"dev-payment-secret"
        return self.payment_secret.encode("utf-8")


@lru_cache
def get_settings() -> Settings:
    return Settings()
