# rollcall/api/v1/router.py
from fastapi import APIRouter
from rollcall.api.v1 import auth, sessions, attendance

api_router = APIRouter()

api_router.include_router(auth.router,       prefix="/auth", tags=["auth"])
api_router.include_router(sessions.router,   tags=["sessions"])
api_router.include_router(attendance.router, tags=["attendance"])
