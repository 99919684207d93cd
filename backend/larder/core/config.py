from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Larder Inventory Engine"
    database_url: str = "sqlite:///./larder.db"
    auto_create_tables: bool = False

    expiring_window_days: int = 3
    notification_retention_days: int = 30
    waste_report_window_days: int = 30
    usage_history_window_days: int = 30
    frequent_usage_limit: int = 20
    expiry_trend_window_days: int = 30
    expired_item_purge_days: int = 30
    expiry_notification_horizon_days: int = 7
    notification_preview_items: int = 5
    soft_delete_depleted_items: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
