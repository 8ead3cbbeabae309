from contextlib import asynccontextmanager
from typing import AsyncIterator

import certifi
from fastapi import FastAPI
from mongoengine import connect, disconnect

from hostel.utils.config import settings
from hostel.utils.logger import get_logger


logger = get_logger(__name__)


def init_mongo() -> None:
    options = {"tz_aware": True}
    if settings.mongo_tls:
        options["tlsCAFile"] = certifi.where()
    connect(host=settings.mongo_uri, alias="default", **options)
    logger.info("Mongo connected | db=%s | host=%s", settings.mongo_db, settings.mongo_host)


def close_mongo() -> None:
    disconnect(alias="default")


@asynccontextmanager
async def mongo_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_mongo()
    try:
        yield
    finally:
        close_mongo()
