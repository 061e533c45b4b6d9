from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncio
import logging

from . import config
from .config import utc_now
from .database import init_db
from .routers import raffles, admin
from .services.raffle import RaffleService

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()
    task = None
    if config.DRAW_SCHEDULER_ENABLED:
        task = asyncio.create_task(draw_scheduler())
    yield
    # Shutdown
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

app = FastAPI(lifespan=lifespan, title="Fair Draw API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(raffles.router, prefix="/api/raffles", tags=["raffles"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


# Background task: close due raffles and draw them once the beacon round exists
async def draw_scheduler():
    while True:
        try:
            await RaffleService.close_and_draw_due_raffles()
        except Exception:
            logger.exception("Error in draw scheduler")
        await asyncio.sleep(config.DRAW_CHECK_INTERVAL_SECONDS)

@app.get("/")
async def root():
    return {"message": "Fair Draw API", "version": "1.0.0"}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": utc_now()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
