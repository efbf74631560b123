import logging

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .config import Settings
from .db import get_engine, get_session
from .errors import register_error_handlers
from .expiry_worker import ExpirySweeper
from .middleware import RequestLoggingMiddleware
from .notifications import NotificationDispatcher, SmtpMailer
from .payu import PayUBridge
from .routes import auth, blogs, bookings, properties, users

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, mailer=None, start_sweeper: bool = True) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Stays Admin")
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    engine = get_engine(settings.database_url)
    sessionmaker = get_session(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.payu = PayUBridge(settings)
    app.state.notifier = NotificationDispatcher(settings, mailer or SmtpMailer(settings))
    app.state.sweeper = ExpirySweeper(
        sessionmaker,
        interval_seconds=settings.expiry_interval_seconds,
        pending_ttl_seconds=settings.pending_ttl_seconds,
    )

    app.include_router(auth.router)
    app.include_router(bookings.router)
    app.include_router(properties.router)
    app.include_router(users.router)
    app.include_router(blogs.router)

    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "stays-admin"}

    @app.on_event("startup")
    async def startup():
        settings.upload_dir.joinpath("blogs").mkdir(parents=True, exist_ok=True)
        if start_sweeper:
            app.state.sweeper.start()
        logger.info("stays admin started env=%s", settings.app_env)

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.sweeper.stop()
        await engine.dispose()

    return app
