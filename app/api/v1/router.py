from fastapi import APIRouter

from modules.notifications.api import router as notifications_router

router = APIRouter()
router.include_router(notifications_router)
