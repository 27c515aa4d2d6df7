"""Stride API application: sign-in, device sessions and two-factor auth."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stride.config import settings
from stride.database import get_db
from stride.rate_limiter import limiter
from stride.routers import auth, mfa, sessions
from stride.services.session_tracking import session_tracking

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Every worker calls this; the expiry sweep still runs once per process
    session_tracking.initialize()
    yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="Stride API",
        description="Job tracker sessions and two-factor authentication",
        version=API_VERSION,
        lifespan=lifespan,
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (auth, mfa, sessions):
        application.include_router(module.router, prefix="/api")

    @application.get("/health")
    def health_check(db: Session = Depends(get_db)):
        """Liveness plus a round trip to the database."""
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Health check could not reach the database")
            return JSONResponse(status_code=503, content={"status": "unhealthy"})
        return {"status": "healthy", "version": API_VERSION}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("stride.main:app", host="0.0.0.0", port=8000, reload=True)
