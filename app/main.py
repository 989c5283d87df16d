import os
import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager # Import asynccontextmanager

from app.core.config import settings
from app.core.friend_manager import manager
from app.api.v1.api import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_firebase() -> None:
    # Imported lazily so the in-memory backend needs no Firebase setup
    import firebase_admin

    if firebase_admin._apps:
        logger.info("Firebase app already initialized.")
        return
    # It will automatically use FIRESTORE_EMULATOR_HOST if set in environment.
    # For production, it will use Application Default Credentials.
    logger.info(f"Initializing Firebase Admin SDK for project {settings.GCP_PROJECT_ID}")
    firebase_admin.initialize_app(options={'projectId': settings.GCP_PROJECT_ID})
    logger.info("Firebase Admin SDK initialized.")


@asynccontextmanager
async def lifespan_context_manager(app: FastAPI):
    # Startup
    if settings.RELATIONSHIP_STORE_BACKEND == "firestore":
        init_firebase()
    manager.start()
    logger.info(f"Friend service started with the {settings.RELATIONSHIP_STORE_BACKEND} store")
    yield
    # Shutdown
    logger.info("Friend service shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Friend connections for the Fairway golf app: requests, friendships and relationship status.",
    version="0.1.0",
    lifespan=lifespan_context_manager # Register the lifespan context manager
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def read_root():
    return {"message": "Welcome to the Fairway Social API"}

@app.get("/health")
async def health_check():
    return {"status": "ok"}

if __name__== "__main__":
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
