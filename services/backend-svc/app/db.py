"""MongoDB connectivity for the backend service.

The service opens one Motor client at startup and keeps it on `app.state` for
the lifetime of the process. Nothing reads or writes through it yet; the only
thing the service does with it is a single connection probe whose outcome is
logged.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient

logger = logging.getLogger(__name__)


def create_client(uri: str, timeout_ms: int) -> AsyncIOMotorClient:
    # Motor connects lazily; this does no I/O
    return AsyncIOMotorClient(uri, serverSelectionTimeoutMS=timeout_ms)


async def connect_database(client: AsyncIOMotorClient) -> AsyncIOMotorClient:
    """Wait until the server behind `client` answers a ping.

    Raises whatever the driver raises when the server cannot be reached
    (typically `pymongo.errors.ServerSelectionTimeoutError`).
    """
    await client.admin.command('ping')
    return client


async def watch_connection(client: AsyncIOMotorClient) -> bool:
    """Run the connection probe once and log the outcome.

    Failures are logged and swallowed so the HTTP side keeps serving. There is
    no retry.
    """
    try:
        await connect_database(client)
    except Exception as err:
        logger.error('MongoDB connection error: %s', err)
        return False
    logger.info('Connected to MongoDB')
    return True
