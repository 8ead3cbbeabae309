from fastapi import FastAPI
from contextlib import AsyncExitStack

from hostel.connections import mongo_lifespan
from hostel.connections.redis import redis_lifespan
from hostel.services.pending_monitor import monitor_lifespan
from hostel.api.registration import router as registration_router
from hostel.api.admin import router as admin_router
from hostel.utils.config import settings
from hostel.utils.logger import configure_logging


configure_logging()


async def combined_lifespan(app: FastAPI):
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(mongo_lifespan(app))
        await stack.enter_async_context(redis_lifespan(app))
        # Monitor last: it scans as soon as it starts
        await stack.enter_async_context(monitor_lifespan(app))

        yield


app = FastAPI(title="Hostel Registration", version="0.1.0", debug=settings.debug, lifespan=combined_lifespan)


app.include_router(registration_router, prefix="/api/registrations")
app.include_router(admin_router, prefix="/api/admin")
