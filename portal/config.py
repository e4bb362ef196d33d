"""Portal configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class PortalSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///portal.db"
    echo_sql: bool = False
    app_title: str = "Messaging Portal"

    auth_secret: str = "dev-portal-secret"
    auth_session_ttl_seconds: int = 86400
    auth_bootstrap_email: str = ""
    auth_bootstrap_password: str = ""
    auth_bootstrap_role: str = "super_admin"
    login_max_failures: int = 5
    login_lockout_seconds: int = 900

    # Mspace SMS gateway
    mspace_base_url: str = "https://api.mspace.co.ke"
    mspace_timeout_seconds: float = 30.0
    mspace_user_agent: str = "MobiWave-SMS-Service/1.0"
    mspace_api_key_length: int = 128
    mspace_default_sender_id: str = "MSPACE"
    sms_segment_length: int = 160

    # Query cache / telemetry
    cache_stale_seconds: int = 5 * 60
    cache_max_age_seconds: int = 30 * 60
    cache_large_entry_bytes: int = 50_000
    cache_recent_seconds: int = 60
    cache_cleanup_interval_seconds: int = 10 * 60
    cache_maintenance_enabled: bool = True
    request_window_seconds: int = 60
    request_limit: int = 500
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0

    # Import jobs
    import_worker_enabled: bool = True
    import_poll_interval_seconds: float = 60.0
    import_batch_size: int = 100
    import_download_timeout_seconds: float = 30.0
    upload_dir: str = "data/uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_types: str = "csv,json"

    # Admin tools
    avatar_dir: str = "data/avatars"
    max_avatar_bytes: int = 5 * 1024 * 1024
    admin_api_key_ttl_days: int = 365
    notification_page_size: int = 20

    model_config = {"env_prefix": "PORTAL_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def project_dir(self) -> Path:
        return self.base_dir.parent

    @property
    def upload_dir_path(self) -> Path:
        path = Path(self.upload_dir)
        if not path.is_absolute():
            path = self.project_dir / path
        return path

    @property
    def avatar_dir_path(self) -> Path:
        path = Path(self.avatar_dir)
        if not path.is_absolute():
            path = self.project_dir / path
        return path

    @property
    def allowed_upload_types_set(self) -> set[str]:
        return {
            item.strip().lower()
            for item in self.allowed_upload_types.split(",")
            if item.strip()
        }

    @property
    def bootstrap_configured(self) -> bool:
        return bool(self.auth_bootstrap_email and self.auth_bootstrap_password)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = PortalSettings()
