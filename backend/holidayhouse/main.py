import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from holidayhouse.core.config import get_settings
from holidayhouse.core.errors import BookingServiceError, ConfigurationError
from holidayhouse.db.base import Base
from holidayhouse.db.session import engine
from holidayhouse.api.routers import (
    bookings as bookings_router,
    fees as fees_router,
)

logger = logging.getLogger("uvicorn.error")

settings = get_settings()

app = FastAPI(title=settings.PROJECT_NAME)

# ---------------------------
# CORS
# ---------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------
# Errors
# ---------------------------
@app.exception_handler(BookingServiceError)
async def booking_service_error_handler(request: Request, exc: BookingServiceError):
    if isinstance(exc, ConfigurationError):
        logger.error("configuration error on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# ---------------------------
# Startup
# ---------------------------
@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

# ---------------------------
# Routers
# ---------------------------
app.include_router(bookings_router.router, prefix="/api/bookings", tags=["bookings"])
app.include_router(fees_router.router, prefix="/api/fees", tags=["fees"])

# ---------------------------
# Health check
# ---------------------------
@app.get("/ping")
async def ping():
    return {"status": "ok"}

# ---------------------------
# Run
# ---------------------------
if __name__ == "__main__":
    uvicorn.run("holidayhouse.main:app", host="0.0.0.0", port=8000, reload=True)
