from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.warehouses import router as warehouses_router
from backend.app.api.v1.endpoints.items import router as items_router
from backend.app.api.v1.endpoints.stock_transfers import router as stock_transfers_router
from backend.app.api.v1.endpoints.stock_activities import router as stock_activities_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(warehouses_router, tags=["warehouses"])
router.include_router(items_router, tags=["items"])
router.include_router(stock_transfers_router, tags=["stock_transfers"])
router.include_router(stock_activities_router, tags=["stock_activities"])
