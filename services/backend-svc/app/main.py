import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from pydantic_settings import BaseSettings, SettingsConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import create_client, watch_connection

logger = logging.getLogger(__name__)

STATUS_MESSAGE = 'Secure Multi-Container Backend Running!'

# ---------------------------
# Settings
# ---------------------------
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')
    # Service
    SERVICE_NAME: str = 'backend-svc'
    HOST: str = '0.0.0.0'
    PORT: int = 5000
    LOG_LEVEL: str = 'INFO'
    # Mongo
    MONGO_URI: str = 'mongodb://mongo:27017/secureapp'
    MONGO_TIMEOUT_MS: int = 30000

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

# ---------------------------
# Errors
# ---------------------------
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    # Only GET / exists, so a wrong method on it is reported like an unknown path
    if exc.status_code == 405:
        exc = StarletteHTTPException(status_code=404)
    return await http_exception_handler(request, exc)

# ---------------------------
# Lifecycle
# ---------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    app.state.mongo = create_client(settings.MONGO_URI, settings.MONGO_TIMEOUT_MS)
    app.state.mongo_probe = asyncio.create_task(watch_connection(app.state.mongo))
    try:
        yield
    finally:
        probe = app.state.mongo_probe
        if not probe.done():
            probe.cancel()
            try:
                await probe
            except asyncio.CancelledError:
                pass
        app.state.mongo.close()

# ---------------------------
# App
# ---------------------------
def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version='0.1.0',
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.mongo = None
    app.state.mongo_probe = None
    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    @app.get('/')
    def root():
        return {'message': STATUS_MESSAGE}

    return app

# ---------------------------
# Server
# ---------------------------
def build_server(app: FastAPI, settings: Settings) -> uvicorn.Server:
    config = uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
    return uvicorn.Server(config)

def bound_port(server: uvicorn.Server) -> int:
    return server.servers[0].sockets[0].getsockname()[1]

async def serve(server: uvicorn.Server) -> None:
    """Run `server` until it exits, logging the port once the socket is bound.

    A bind failure makes uvicorn raise SystemExit before anything is logged
    here.
    """
    task = asyncio.create_task(server.serve())
    while not server.started and not task.done():
        await asyncio.sleep(0.05)
    if server.started:
        logger.info('Backend running on port %s', bound_port(server))
    await task

settings = Settings()
app = create_app(settings)

if __name__ == '__main__':
    asyncio.run(serve(build_server(app, settings)))
