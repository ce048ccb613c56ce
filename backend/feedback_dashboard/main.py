import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedback_dashboard.api.v1.auth import router as auth_router
from feedback_dashboard.api.v1.dashboard import router as dashboard_router
from feedback_dashboard.api.v1.feedback import router as feedback_router
from feedback_dashboard.api.v1.issues import router as issues_router
from feedback_dashboard.api.v1.notifications import router as notifications_router
from feedback_dashboard.api.v1.team import router as team_router
from feedback_dashboard.config import get_settings
from feedback_dashboard.services.notifications import NotificationHub
from feedback_dashboard.services.realtime import change_feed

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    app.state.notification_hub = NotificationHub(
        change_feed, retention=settings.NOTIFICATION_RETENTION
    )
    yield
    await app.state.notification_hub.close()
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1 routers
API_V1_PREFIX = "/api/v1"
app.include_router(auth_router, prefix=API_V1_PREFIX)
app.include_router(feedback_router, prefix=API_V1_PREFIX)
app.include_router(issues_router, prefix=API_V1_PREFIX)
app.include_router(team_router, prefix=API_V1_PREFIX)
app.include_router(dashboard_router, prefix=API_V1_PREFIX)
app.include_router(notifications_router, prefix=API_V1_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": settings.APP_VERSION}
