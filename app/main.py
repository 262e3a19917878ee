import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.core.database import engine, AsyncSessionLocal
from app.core.registry import OwnershipRegistry
from app.api.errors import register_error_handlers
from app.api.router import api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Create the registry table on start-up, close the engine once everything is done
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with AsyncSessionLocal() as session:
        await OwnershipRegistry(session).ensure_store_exists()
    logger.info("Table registry is ready")

    yield
    await engine.dispose()


app = FastAPI(title="Dynamico Dynamic Tables API", lifespan=lifespan)

register_error_handlers(app)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Dynamico API"}
