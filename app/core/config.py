from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # DB
    DATABASE_URL: str = "sqlite:///./database.db"
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Security / JWT (tokens are issued by the identity service)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Pricing
    DEFAULT_CURRENCY: str = "INR"
    ACTIVATION_MAX_RETRIES: int = 3
    SLOW_QUOTE_MS: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
