from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from redis.asyncio import Redis
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware

from taskgate.apps.jobs.routers import job_router
from taskgate.apps.jobs.services import JobExecutor, JobSubmissionService, WorkQueue
from taskgate.apps.projects.routers import project_router
from taskgate.apps.projects.services import ProjectService
from taskgate.core.config import Settings, app_logger, settings
from taskgate.core.db import Database
from taskgate.core.db.crud import JobDB, OTPChallengeDB, ProjectDB, UserDB
from taskgate.core.exceptions.handlers import (
    exception_schema,
    register_exception_handlers,
)
from taskgate.core.exceptions.types import ServiceUnavailable
from taskgate.core.routers import auth_router
from taskgate.core.services import (
    AccountOnboardingService,
    BrevoEmailSender,
    EmailSender,
    MemoryBackend,
    OtpChallengeService,
    RateLimiter,
    RedisBackend,
    SessionTokenService,
)
from taskgate.core.utils import utc_now
from taskgate.infrastructure.messaging.connection import RabbitMQ
from taskgate.infrastructure.messaging.main import get_queue_configs, start_consumers
from taskgate.infrastructure.messaging.publisher import RabbitMQWorkQueue
from taskgate.infrastructure.messaging.queues import RetryPolicy
from taskgate.infrastructure.scheduler.main import initialize_scheduler


def install_services(
    app: FastAPI,
    settings: Settings,
    database: Database,
    email_sender: EmailSender,
    work_queue: WorkQueue | None,
    rate_limiter: RateLimiter,
    clock: Callable[[], datetime] = utc_now,
) -> None:
    """
    Wire every service handle onto ``app.state``.

    Routers reach services only through ``app.state``; tests call this with
    fakes for the outbound collaborators.
    """
    user_store = UserDB()
    token_service = SessionTokenService(
        secret=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        lifetime_minutes=settings.SESSION_TOKEN_LIFETIME_MINUTES,
    )
    otp_service = OtpChallengeService.from_settings(
        settings, OTPChallengeDB(), email_sender, clock=clock
    )

    app.state.settings = settings
    app.state.db = database
    app.state.email_sender = email_sender
    app.state.work_queue = work_queue
    app.state.rate_limiter = rate_limiter
    app.state.token_service = token_service
    app.state.otp_service = otp_service
    app.state.onboarding_service = AccountOnboardingService(
        user_store, otp_service, token_service
    )
    app.state.job_service = JobSubmissionService(
        JobDB(), work_queue, RetryPolicy.from_settings(settings)
    )
    app.state.project_service = ProjectService(ProjectDB(), user_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")
    redis_client: Redis | None = None
    rabbitmq: RabbitMQ | None = None
    scheduler = None

    # Initialize database
    app_logger.info("Initializing database...")
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    await database.init()
    app_logger.info("Database initialized successfully.")

    # Initialize rate limiter
    if settings.RATE_LIMIT_BACKEND == "redis":
        app_logger.info("Initializing Redis rate limit backend...")
        redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        rate_limiter = RateLimiter(RedisBackend(redis_client))
    else:
        rate_limiter = RateLimiter(MemoryBackend())
    app_logger.info(f"Rate limiter using '{settings.RATE_LIMIT_BACKEND}' backend.")

    # Initialize Brevo sender
    app_logger.info("Initializing Brevo email sender...")
    email_sender = BrevoEmailSender(
        api_key=settings.BREVO_API_KEY,
        sender_email=settings.BREVO_SENDER_EMAIL,
        sender_name=settings.BREVO_SENDER_NAME,
        base_url=settings.BREVO_BASE_URL,
        timeout=settings.BREVO_TIMEOUT_SECONDS,
        max_attempts=settings.BREVO_MAX_ATTEMPTS,
    )

    # Connect to RabbitMQ (only if enabled)
    work_queue: RabbitMQWorkQueue | None = None
    if settings.ENABLE_MESSAGING:
        app_logger.info("Connecting to RabbitMQ...")
        rabbitmq = RabbitMQ(settings.RABBITMQ_URL)
        await rabbitmq.connect()
        work_queue = RabbitMQWorkQueue(rabbitmq, settings.JOB_QUEUE_NAME)
        app_logger.info("RabbitMQ connected successfully.")
    else:
        app_logger.info("Messaging disabled via ENABLE_MESSAGING setting.")

    install_services(app, settings, database, email_sender, work_queue, rate_limiter)
    app.state.rabbitmq = rabbitmq

    if rabbitmq is not None and settings.ENABLE_CONSUMERS:
        app_logger.info("Starting job consumers...")
        executor = JobExecutor.from_settings(settings, JobDB(), database.session_factory)
        await start_consumers(
            rabbitmq,
            get_queue_configs(settings, executor),
            prefetch_count=settings.JOB_WORKER_CONCURRENCY,
        )
        app_logger.info("Job consumers started successfully.")

    # Start the scheduler (only if enabled)
    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting scheduler...")
        scheduler = initialize_scheduler(database, settings)
        scheduler.start()
        app_logger.info("Scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    yield

    app_logger.info("Shutting down application...")

    if scheduler is not None:
        scheduler.shutdown()
        app_logger.info("Scheduler stopped successfully.")

    if rabbitmq is not None:
        await rabbitmq.close()

    await email_sender.aclose()

    if redis_client is not None:
        await redis_client.aclose()
        app_logger.info("Redis client closed successfully.")

    await database.dispose()
    app_logger.info("Application shutdown complete.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
)

register_exception_handlers(app)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, tags=["Authentication"])
app.include_router(job_router, tags=["Jobs"])
app.include_router(project_router, tags=["Projects"])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = str(request.base_url).rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint to verify if the API is running.

    Checks:
        - Database connectivity
        - RabbitMQ connectivity (when messaging is enabled)
    """
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} is running.",
        "checks": {
            "database": "ok",
            "messaging": "disabled",
        },
    }

    database: Database = request.app.state.db
    try:
        async with database.session() as session:
            result = await session.execute(text("SELECT 1"))
            if result.scalar() != 1:
                health_status["checks"]["database"] = "unhealthy"
                health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    rabbitmq: RabbitMQ | None = getattr(request.app.state, "rabbitmq", None)
    if rabbitmq is not None:
        if rabbitmq.is_connected:
            health_status["checks"]["messaging"] = "ok"
        else:
            health_status["checks"]["messaging"] = "unhealthy"
            health_status["status"] = "degraded"

    if health_status["status"] != "ok":
        raise ServiceUnavailable(
            "One or more health checks failed.", details=health_status
        )

    return health_status
