"""Mock Exam Engine - API v1 Router."""
from fastapi import APIRouter

from app.api.v1.mock_exam import router as mock_exam_router

api_router = APIRouter()

api_router.include_router(mock_exam_router)
