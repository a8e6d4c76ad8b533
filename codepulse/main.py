"""FastAPI app entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import DB_PATH, LOG_LEVEL, PORT
from .db import close_conn, get_conn
from .recorder import registry

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the session log
    get_conn()
    logger.info("Session log at %s", DB_PATH)
    yield
    # Shutdown: partial accumulators are dropped with their recorders
    registry.stop_all()
    close_conn()


app = FastAPI(title="CodePulse", lifespan=lifespan)

# The browser extension and the dashboard call in from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

from .ingest import router as ingest_router
from .api import router as api_router
from .dashboard import router as dashboard_router

app.include_router(ingest_router)
app.include_router(api_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=PORT)
