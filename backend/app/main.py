from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import settings
from backend.app.core.logging import configure_logging, get_logger
from backend.app.db.immutability import register_immutability_listeners
from backend.services.exceptions import InventoryError

configure_logging(level=settings.log_level, json_lines=settings.log_json)
register_immutability_listeners()

logger = get_logger("api")

app = FastAPI(title="STOCKFLOW WMS", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    logger.info(
        "inventory_error",
        extra={"path": request.url.path, "error_code": exc.code, "reason": exc.message},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
