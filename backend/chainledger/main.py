from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from chainledger.config import get_settings
from chainledger.database import init_db
from chainledger.deps import get_sync_registry

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()

    yield

    # Shutdown: let in-flight syncs record their terminal state
    active = [h.task for h in get_sync_registry().active() if h.task is not None]
    if active:
        logger.info(f"Waiting for {len(active)} sync runs to finish")
        await asyncio.gather(*active, return_exceptions=True)


app = FastAPI(
    title="Chain Ledger",
    description="Multi-chain wallet transaction sync and token approval tracking",
    version="1.0.0",
    lifespan=lifespan,
)

_origins = [settings.frontend_url.rstrip("/"), "http://localhost:3000", "http://localhost:3001"]
if settings.extra_cors_origins:
    _origins.extend([o.strip().rstrip("/") for o in settings.extra_cors_origins.split(",") if o.strip()])
# Deduplicate
_origins = list(dict.fromkeys(_origins))

logger.info("CORS allowed origins: %s", _origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
from chainledger.api import wallets, sync, approvals

app.include_router(wallets.router)
app.include_router(sync.router)
app.include_router(approvals.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
