from fastapi import APIRouter

from app.api.v1 import auth, csv_files

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(csv_files.router, prefix="/csv", tags=["csv"])
