"""
CBAF Funding Service - FastAPI Backend
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import addresses, funding, payments, rankings, settings as settings_api, videos
from config import get_settings
from repositories import close_db_pool, get_db_pool

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_db_pool()
    logger.info("✅ PostgreSQL pool ready")
    if not settings.blink_configured:
        logger.warning("⚠️  Blink wallet not configured, payouts are disabled")
    yield
    await close_db_pool()
    logger.info("PostgreSQL pool closed")


app = FastAPI(
    title="CBAF Funding Service",
    description="Rankings, funding allocation and Lightning payouts for Bitcoin circular economies",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORS for the admin dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rankings.router)
app.include_router(funding.router)
app.include_router(payments.router)
app.include_router(videos.router)
app.include_router(addresses.router)
app.include_router(settings_api.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/cbaf/health")
async def api_health():
    return {"status": "ok", "service": "cbaf_funding"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
