import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .config import settings
from .db.mongo import connect, disconnect
from .logging_setup import configure_logging
from .services.auth import Auth
from .services.storage import Storage

from .routes.site import router as site_router
from .routes.users import router as users_router
# the catch-all /{file_ref} route lives here, so it is included last
from .routes.files import router as files_router

logger = logging.getLogger(__name__)


def create_app(storage: Optional[Storage] = None, auth: Optional[Auth] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("filehost startup")
        await connect()
        try:
            app.state.storage = storage or Storage.from_settings(settings)
            app.state.storage.ensure_storage_dir()
            app.state.auth = auth or Auth(settings.default_privs)

            result = await app.state.auth.bootstrap()
            if result.created:
                logger.warning(
                    'generated admin user "%s". This message is only shown once, '
                    "so be sure to save the ID somewhere safe!",
                    result.user.id,
                )
            logger.info("filehost is running at port %d", settings.app_port)
            yield
        finally:
            await disconnect()

    app = FastAPI(title="filehost", lifespan=lifespan)

    app.include_router(site_router)
    app.include_router(users_router)
    app.include_router(files_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("filehost.main:app", host=settings.app_host, port=settings.app_port)
