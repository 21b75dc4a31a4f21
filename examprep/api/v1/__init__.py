"""API v1 router."""
from fastapi import APIRouter

from examprep.api.v1 import assessments, auth

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(assessments.router, prefix="/assessments", tags=["Adaptive Assessments"])
