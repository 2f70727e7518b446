import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lrems_backend.api.auth import auth_router
from lrems_backend.api.books import books_router
from lrems_backend.api.cache import ResponseCache
from lrems_backend.api.monitoring import monitoring_router
from lrems_backend.api.users import users_router
from lrems_backend.database import init_db
from lrems_backend.permissions.overrides import OverridePolicy, load_override_policy
from lrems_backend.settings import settings

logger = logging.getLogger(__name__)


def create_app(
    policy: Optional[OverridePolicy] = None,
    cache: Optional[ResponseCache] = None,
    initialize_database: Optional[bool] = None,
) -> FastAPI:

    if initialize_database is None:
        initialize_database = settings.DEBUG_MODE != "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if initialize_database:
            init_db()
        yield
        await app.state.response_cache.close()

    app = FastAPI(lifespan=lifespan)

    app.state.override_policy = policy if policy is not None else load_override_policy()
    app.state.response_cache = cache if cache is not None else ResponseCache()

    origins = [
        "*"
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag", "Cache-Control"],
    )

    app.include_router(
        books_router,
        prefix="/books",
        tags=["books"]
    )

    app.include_router(
        monitoring_router,
        prefix="/monitoring",
        tags=["monitoring"]
    )

    app.include_router(
        auth_router,
        prefix="/auth",
        tags=["auth"]
    )

    app.include_router(
        users_router,
        prefix="/users",
        tags=["users"]
    )

    @app.head("/", status_code=204)
    def get_status_head():
        return

    logger.info(f"Application created (cache {'enabled' if app.state.response_cache.enabled else 'disabled'})")

    return app
