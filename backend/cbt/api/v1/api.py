"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter

from cbt.api.v1 import health, test
from cbt.api.v1.admin import test_codes

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(
    test_codes.router, prefix="/admin/test-codes", tags=["Admin - Test Codes"]
)
api_router.include_router(test.router, prefix="/test", tags=["test"])
