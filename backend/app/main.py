from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import get_settings
from backend.app.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(get_settings().LOG_LEVEL)
    yield


app = FastAPI(title="NAC Inventory Ledger", version="0.1.0", lifespan=lifespan)
app.include_router(v1_router, prefix="/v1")
