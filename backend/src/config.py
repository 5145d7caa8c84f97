from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str  # postgresql+asyncpg://... in production
    SQL_ECHO: bool = False

    APP_NAME: str = "EduViz Chat"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:8080"]

    # Conversation used when a send request names no course
    DIRECT_CONVERSATION_ID: str = "direct-messaging"
    RECENT_MESSAGES_LIMIT: int = 100

    UPLOAD_DIR: str = "uploads"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
