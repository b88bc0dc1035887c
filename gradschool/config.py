from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Graduate School Defense Workflow'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Manila'
    database_url: str = 'sqlite:///./gradschool.db'
    db_slow_query_ms: int = 100
    request_slow_ms: int = 500
    seed_reference_data: bool = True
    enforce_panel_size: bool = True
    min_panel_size_masteral: int = 4
    min_panel_size_doctorate: int = 5
    school_year_start_month: int = 6
    notification_mode: str = 'log'
    notification_webhook_url: str = ''
    notification_timeout_seconds: float = 5.0
    enable_sync_retry_job: bool = False
    sync_retry_interval_minutes: int = 15


settings = Settings()
