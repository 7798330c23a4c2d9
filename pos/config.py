from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "pos"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    # off: any active status may move anywhere; on: forward-only, cancel from any active
    STRICT_STATUS_TRANSITIONS: bool = False
    ORDER_NUMBER_RETRIES: int = 3
    PAYMENT_RETRIES: int = 3
    KITCHEN_WEBHOOK_URL: str | None = None
    WEBHOOK_TIMEOUT: float = 3.0
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
