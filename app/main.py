import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import BookingError, InvalidTransition
from app.core.logging import setup_logging
from app.db.base import Base, engine
from app.api.routes import auth
from app.api.routes import services as services_router
from app.api.routes import bookings as bookings_router
from app.api.routes import payments as payments_router
from app.api.routes import ws as ws_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    body = {"detail": exc.message}
    if isinstance(exc, InvalidTransition):
        body.update({"currentStatus": exc.current, "requestedStatus": exc.requested})
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.get("/")
def root():
    return {"message": "Service Marketplace Bookings API running"}


app.include_router(auth.router, prefix="/api/auth")
app.include_router(services_router.router)
app.include_router(bookings_router.router)
app.include_router(payments_router.router)
app.include_router(ws_router.router)
