"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.actions import router as actions_router
from api.v1.admin import router as admin_router
from api.v1.checkins import router as checkins_router
from api.v1.devices import router as devices_router
from api.v1.rewards import router as rewards_router
from api.v1.sessions import router as sessions_router
from api.v1.trust import router as trust_router

router = APIRouter()

router.include_router(devices_router, prefix="/devices", tags=["Devices"])
router.include_router(actions_router, prefix="/actions", tags=["Rate Limiting"])
router.include_router(rewards_router, prefix="/rewards", tags=["Reward Anti-Cheat"])
router.include_router(checkins_router, prefix="/checkins", tags=["Check-Ins"])
router.include_router(trust_router, prefix="/trust", tags=["Trust Score"])
router.include_router(sessions_router, prefix="/sessions", tags=["Session Security"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
