# swim_makeup/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from swim_makeup.api.deps import limiter
from swim_makeup.api.v1.api import api_router
from swim_makeup.core.config import settings
from swim_makeup.core.email import init_resend
from swim_makeup.core.errors import MakeupError
from swim_makeup.db.base_class import Base
from swim_makeup.db.session import engine
from swim_makeup import models  # noqa: F401  (registers tables on Base)
from swim_makeup.scheduler import init_scheduler, shutdown_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("Application starting up...")

    if settings.ENV == "local":
        # Production schemas are managed by Alembic
        Base.metadata.create_all(bind=engine)

    if not init_resend():
        logger.warning("RESEND_API_KEY not set; makeup emails will be skipped")

    if not settings.INTERNAL_API_KEY:
        logger.warning("INTERNAL_API_KEY not set; admin endpoints will refuse every request")

    if settings.SCHEDULER_ENABLED:
        init_scheduler()

    yield

    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    logger.info("Application shutting down...")


app = FastAPI(
    title="Swim School Makeup Service",
    version="1.0.0",
    description="""
        **Makeup lesson booking for swimming school families**

        ## Features

        * **Absences**: Log a missed lesson and resume later with a token
        * **Search**: Find makeup lessons in the same class band within the makeup window
        * **Booking**: Book a place immediately while makeup capacity remains
        * **Waitlist**: Join a full lesson's queue and get confirmed automatically, oldest first
        * **Decline**: Give a place back from the emailed link
        * **Admin**: Manage slots, capacity, holidays and settings

        ## Authentication

        Endpoints under `/admin/` require the `X-Internal-Api-Key` header.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(MakeupError)
async def makeup_error_handler(request: Request, exc: MakeupError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "reason": exc.reason, "detail": exc.message},
    )


origins = [
    "http://localhost:3000",
    settings.PUBLIC_BASE_URL,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Swim School Makeup Service is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
