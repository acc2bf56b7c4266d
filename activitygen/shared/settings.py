from pydantic import BaseModel, Field
import os

class Settings(BaseModel):
    app_name: str = "activity-mock-generator"
    env: str = Field(default=os.getenv("ENV", "dev"))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    # DB
    db_host: str = Field(default=os.getenv("POSTGRES_HOST", "postgres"))
    db_port: int = Field(default=int(os.getenv("POSTGRES_PORT", "5432")))
    db_user: str = Field(default=os.getenv("POSTGRES_USER", "app"))
    db_password: str = Field(default=os.getenv("POSTGRES_PASSWORD", "app"))
    db_name: str = Field(default=os.getenv("POSTGRES_DB", "activity"))

    # Metrics
    enable_metrics: bool = Field(default=os.getenv("ENABLE_METRICS", "1") == "1")

    # "memory" keeps everything in-process, "postgres" persists segments
    storage_backend: str = Field(default=os.getenv("ACTIVITY_STORAGE", "memory"))

    # Namespaces and mounts
    root_namespace_id: str = Field(default=os.getenv("ROOT_NAMESPACE_ID", "root"))
    registry_path: str = Field(default=os.getenv("ACTIVITY_REGISTRY", ""))

settings = Settings()
