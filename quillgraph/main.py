import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from quillgraph.api import create_graphql_router
from quillgraph.cache import cache
from quillgraph.config import settings
from quillgraph.middleware import TimingMiddleware
from quillgraph.notifier import ChangeNotifier
from quillgraph.storage import FileStorage

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, continuing without it: %s", exc)
    app.state.storage.ensure_root()
    logger.info("Serving uploads from %s", app.state.storage.root)
    yield
    # Shutdown
    app.state.notifier.close()
    await cache.disconnect()


def create_app(
    storage: FileStorage | None = None,
    notifier: ChangeNotifier | None = None,
) -> FastAPI:
    """
    Build the application.

    The change bus and blob storage live on ``app.state`` from construction
    on, so an app driven without its lifespan (e.g. through
    ``httpx.ASGITransport``) is still fully wired.
    """
    storage = storage or FileStorage(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
    notifier = notifier or ChangeNotifier(queue_size=settings.SUBSCRIBER_QUEUE_SIZE)

    app = FastAPI(
        title="Quillgraph API",
        description="GraphQL API for users, posts, books, comments, reviews and files",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.notifier = notifier

    # Middleware
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(create_graphql_router(), prefix="/graphql")
    app.mount(
        storage.url_prefix,
        StaticFiles(directory=storage.root, check_dir=False),
        name="uploads",
    )

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "cache": cache.stats,
            "subscriptions": notifier.stats,
        }

    return app


configure_logging()
app = create_app()
