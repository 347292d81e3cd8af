import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # --- Server ---
    port: int = 8080
    workers: int = 4
    environment: str = "development"

    # --- Batch Limits ---
    max_file_size: int = 20 * 1024 * 1024  # bytes, per file
    max_files: int = 10
    request_time_budget_seconds: int = 30  # 0 = no deadline

    # --- Concurrency ---
    concurrency_limit: int = 4  # in-flight files per batch
    compression_semaphore_size: int = 0  # 0 = use CPU count
    max_queue_depth: int = 0  # 0 = 2 * semaphore size

    # --- Optimization ---
    optimizer_backend: str = "auto"  # "auto", "pillow" or "passthrough"

    # --- Local Storage ---
    upload_dir: str = "public/uploads"
    upload_public_prefix: str = "uploads"
    default_upload_type: str = "products"
    placeholder_path: str = "/placeholder-image.svg"

    # --- Deployment ---
    deployment_mode: str = "auto"  # "auto", "local" or "ephemeral"
    strict_mode: bool = False
    vercel: str = ""
    aws_lambda_function_name: str = ""
    function_name: str = ""
    k_service: str = ""

    # --- Cloudflare R2 (primary cloud) ---
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket: str = "images"
    r2_public_url: str = ""
    r2_max_retries: int = 3
    r2_timeout_seconds: int = 30

    # --- Google Cloud Storage (secondary cloud) ---
    gcs_bucket: str = ""
    gcs_project: str = ""
    gcs_public: bool = False

    # --- Security ---
    allowed_origins: str = "*"

    # --- Logging ---
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def model_post_init(self, __context) -> None:
        if self.compression_semaphore_size == 0:
            self.compression_semaphore_size = os.cpu_count() or 4
        if self.max_queue_depth == 0:
            self.max_queue_depth = 2 * self.compression_semaphore_size

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def max_file_size_mb(self) -> int:
        return round(self.max_file_size / 1024 / 1024)


settings = Settings()
