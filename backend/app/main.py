from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import ServiceError, service_error_handler
from app.core.logging import configure_logging
import app.models  # noqa: F401  # force model registration

from app.api.v1.auth import router as auth_router
from app.api.v1.event_promoters import router as event_promoters_router


def create_application() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Promoter Assignment API")

    app.add_exception_handler(ServiceError, service_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            # Local development (frontend)
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            settings.APP_BASE_URL_CLEAN,
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "ok", "service": "promoter-assignment"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(event_promoters_router, prefix="/api/v1")

    return app


app = create_application()
