import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from typing import Optional

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Fairway Social API"
    API_V1_STR: str = "/api/v1"
    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:5173",      # Vite dev server
        "http://localhost:8080",
        "http://127.0.0.1:8000",
        "capacitor://localhost",      # Mobile shell
    ]
    # GCP and Firebase Settings
    GCP_PROJECT_ID: Optional[str] = os.getenv("GCP_PROJECT_ID")
    # For live deployment, ensure FIRESTORE_EMULATOR_HOST environment variable is NOT set.
    FIRESTORE_EMULATOR_HOST: Optional[str] = os.getenv("FIRESTORE_EMULATOR_HOST") # e.g., "localhost:8080"
    # For live deployment, ensure PUBSUB_EMULATOR_HOST environment variable is NOT set.
    PUBSUB_EMULATOR_HOST: Optional[str] = os.getenv("PUBSUB_EMULATOR_HOST") # e.g., "localhost:8085"

    #JWT Settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "secret_key")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7 # 7 days

    # "firestore" in deployments, "memory" for local runs and tests
    RELATIONSHIP_STORE_BACKEND: str = os.getenv("RELATIONSHIP_STORE_BACKEND", "firestore")
    # "pubsub" publishes friend events, "log" only writes them to the log
    NOTIFICATION_BACKEND: str = os.getenv("NOTIFICATION_BACKEND", "pubsub")
    NOTIFICATION_TOPIC_NAME: str = "fairway-friend-events"

    STATUS_CACHE_TTL_SECONDS: float = 15.0
    FRIEND_LIST_LIMIT: int = 100
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        case_sensitive = True


settings = Settings()
