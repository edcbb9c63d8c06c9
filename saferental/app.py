import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from saferental.core.catch_error_middleware import ErrorHandlerMiddleware
from saferental.core.exception_handler import ValidationErrorHandler
from saferental.core.lifespan import lifespan
from saferental.core.settings import Settings, settings as default_settings
from saferental.routes.agreement_routes import router as agreement_router
from saferental.routes.file_routes import router as file_router
from saferental.routes.otp_routes import router as otp_router
from saferental.schemas.schema import HealthOut


def create_app(
    settings: Settings | None = None,
    *,
    email_service=None,
    transports=None,
    delivery=None,
) -> FastAPI:
    settings = settings or default_settings

    logging.basicConfig(level=logging.INFO)
    app = FastAPI(
        lifespan=lifespan,
        title=settings.PROJECT_NAME,
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.email_service = email_service
    app.state.transports = transports
    app.state.delivery = delivery

    app.include_router(agreement_router, prefix="/api")
    app.include_router(otp_router, prefix="/api/otp")
    app.include_router(file_router, prefix="/api/files")

    @app.get("/health", tags=["System"], response_model=HealthOut)
    async def health_check(request: Request):
        database = getattr(request.app.state, "database", None)
        healthy = database is not None and await database.ping()
        return HealthOut(status="ok", database="ok" if healthy else "unavailable")

    app.add_exception_handler(
        RequestValidationError,
        ValidationErrorHandler(),
    )

    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
