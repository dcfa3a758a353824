from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "EMS API"
    secret_key: str
    jwt_alg: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_minutes: int = 43200
    database_url: str = "sqlite:///./ems.db"
    log_level: str = "INFO"

    # Comma-separated list of exact origins
    cors_origins: str = "http://localhost:5173"

    # Upload settings
    max_upload_size: int = 10 * 1024 * 1024  # 10MB
    profile_folder: str = "ems_profiles"
    resume_folder: str = "ems_resumes"

    # S3-compatible object storage
    s3_bucket: str = "ems-uploads"
    s3_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    # Overrides the default https://<bucket>.s3.<region>.amazonaws.com prefix
    s3_public_base_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None

    # Optional email settings
    smtp_host: str | None = None
    smtp_port: int | None = None
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_from: str | None = None

    # Formspree (optional alternative to SMTP)
    formspree_form_id: str | None = None
    formspree_api_key: str | None = None

    # Frontend base URL used for links in emails
    frontend_base_url: str = "http://localhost:5173"

    # Daily summary job
    daily_summary_enabled: bool = False
    daily_summary_interval_hours: int = 24

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
