from fastapi import APIRouter

from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.routes import router as app_router
from app.api.tasks import router as tasks_router
from app.api.views import router as views_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(app_router)
router.include_router(tasks_router)
router.include_router(admin_router)
router.include_router(views_router)

__all__ = ["router"]
