"""API v1 router aggregator.

All v1 endpoint routers are included here, mounted under /api/v1.
"""

from fastapi import APIRouter

from mailauth.api.v1 import auth_email

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth_email.router, prefix="/auth/email", tags=["auth"])
