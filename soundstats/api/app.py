import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from soundstats.api.routes import dashboard, feed, leaderboard, settings
from soundstats.db import connection as db_connection
from soundstats.services.stats_cache import get_stats_cache

app = FastAPI(
    title="SoundStats API",
    description="Listening statistics, leaderboards and activity feed",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("SOUNDSTATS_CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(leaderboard.router, prefix="/api/leaderboard", tags=["leaderboard"])
app.include_router(feed.router, prefix="/api/feed", tags=["feed"])
app.include_router(settings.router, prefix="/api/settings", tags=["settings"])


@app.on_event("shutdown")
async def shutdown_connection_pool() -> None:
    """Close the database connection pool on shutdown."""
    db_connection.close_pool()


@app.get("/")
async def root():
    return {"message": "SoundStats API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check with connection pool and cache stats."""
    try:
        return {
            "status": "healthy",
            "pool": db_connection.get_pool_stats(),
            "cache": get_stats_cache().get_stats(),
        }
    except Exception as e:
        return {
            "status": "degraded",
            "error": str(e),
        }
