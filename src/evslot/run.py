import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import config, endpoints, models
from .booking import BookingService
from .database import make_engine, make_session_factory
from .errors import ServiceError
from .mqtt import MQTTClient
from .seed import seed_sample_data

logger = logging.getLogger("evslot_logger")


def logger_init(level):
    logger = logging.getLogger("evslot_logger")
    logger.setLevel(level)
    ch = logging.StreamHandler()
    ch.setLevel(level)
    formatter = logging.Formatter("[%(asctime)s][%(levelname)s]   %(message)s")
    ch.setFormatter(formatter)
    logger.addHandler(ch)


async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid input data", "error": "validation_error", "errors": errors},
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "error": "internal_error"})


def create_app(engine=None, notifier=None, seed: Optional[bool] = None) -> FastAPI:
    '''
    Builds the application around an explicitly constructed store.
    Tables are created if missing, and the sample stations are added to an
    empty database when seeding is on.
    '''
    if engine is None:
        engine = make_engine(config.DATABASE_URL)
    if seed is None:
        seed = config.SEED_SAMPLE_DATA

    models.Base.metadata.create_all(bind=engine)  # Creates database file, if not present

    app = FastAPI(title="EV Slot Booking")
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.booking_service = BookingService(notifier=notifier)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(endpoints.router)

    if seed:
        db = app.state.session_factory()
        try:
            seed_sample_data(db, app.state.booking_service)
        finally:
            db.close()

    return app


def run():
    ''' Starts the server '''
    logger_init(config.LOG_LEVEL)

    notifier = None
    if config.MQTT_ENABLED:
        notifier = MQTTClient()
        notifier.start()

    app = create_app(notifier=notifier)
    try:
        uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT, log_level=config.LOG_LEVEL.lower())
    finally:
        if notifier is not None:
            notifier.stop()


if __name__ == "__main__":
    run()
