from fastapi import APIRouter

from app.api.v1.endpoints import friends


api_router = APIRouter()
api_router.include_router(friends.router, prefix="/friends", tags=["friends"])
