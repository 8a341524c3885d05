import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dragrace_fantasy.core.config import get_settings
from dragrace_fantasy.core.database import engine, Base
from dragrace_fantasy.api import weeks, leaderboard

# Import all models so Base.metadata is populated for create_all
import dragrace_fantasy.models.models  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup (idempotent, skips existing tables)
    logger.info("Starting up: creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully.")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Drag Race fantasy league scoring engine: weekly results, finale placements and leaderboards.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS: open for now, lock down in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(weeks.router)
app.include_router(leaderboard.router)


@app.get("/health")
async def health():
    return {"status": "healthy"}
