import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eduai.core.config import Settings, get_settings
from eduai.core.errors import register_exception_handlers
from eduai.db.sessions import Database
from eduai.routes import ai, auth, profile, topics
from eduai.services.content_generator import ContentGenerator
from eduai.services.file_topic_store import JsonFileTopicStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    content_generator: Optional[ContentGenerator] = None,
) -> FastAPI:
    """Build the API with its own database handle and collaborators."""
    settings = settings or get_settings()

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=settings.LOG_LEVEL,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Learning topics with AI-generated content and quizzes"
    )

    app.state.settings = settings
    app.state.database = Database(settings.database_url)
    app.state.database.create_all()
    app.state.content_generator = content_generator or ContentGenerator(settings)
    if settings.TOPIC_STORE == "file":
        app.state.file_topic_store = JsonFileTopicStore(
            settings.TOPIC_STORE_PATH, max_attempts=settings.SLUG_MAX_ATTEMPTS
        )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(auth.router)
    app.include_router(topics.router)
    app.include_router(profile.router)
    app.include_router(ai.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("%s v%s starting", settings.APP_NAME, settings.APP_VERSION)
        if app.state.database.ping():
            logger.info("Database connected")
        logger.info("Topic store: %s", settings.TOPIC_STORE)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Closing database connection pool")
        app.state.database.dispose()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run() -> None:
    """Console entry point: serve the API on API_PORT."""
    settings = get_settings()
    uvicorn.run("eduai.main:create_app", factory=True, host="0.0.0.0", port=settings.API_PORT)


if __name__ == "__main__":
    run()
