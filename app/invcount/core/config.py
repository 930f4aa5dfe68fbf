from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "INVCOUNT"
    DATABASE_URL: str = "sqlite+pysqlite:///./invcount.db"
    DATABASE_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    SESSION_CODE_PREFIX: str = "INV"
    DEFAULT_ALLOW_BLIND_COUNT: bool = True
    SESSIONS_PAGE_SIZE: int = 20
    ITEMS_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200
    BATCH_COUNT_MAX_ROWS: int = 1000
    VARIANCE_REPORT_TOP_N: int = 10


settings = Settings()
