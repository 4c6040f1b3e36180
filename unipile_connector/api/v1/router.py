"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from unipile_connector.api.v1 import accounts

router = APIRouter()

# =============================================================================
# Linked accounts
# =============================================================================

router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
