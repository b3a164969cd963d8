"""
FastAPI application entry point.

Voter-facing API for the story loop plus scheduler control.

Optional API key authentication protects the /scheduler/* endpoints only;
reading the story and voting stay public.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI

from src import __version__
from src.infra.config import EngineConfig
from .routers import polls, chapters, scheduler
from ._engine_state import init_engine, shutdown_engine
from .dependencies.auth import verify_api_key, API_AUTH_ENABLED

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown of the story engine:
    - Builds the engine from the environment
    - Starts the tick loop when SCHEDULER_AUTOSTART is set
    - Stops the loop gracefully on shutdown
    """
    # Startup
    config = EngineConfig.from_env()
    engine = init_engine(config)
    if config.scheduler_autostart:
        logger.info("[API] SCHEDULER_AUTOSTART set, starting story loop")
        engine.start_scheduler()

    yield

    # Shutdown
    shutdown_engine()

# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "polls",
        "description": "Reader polls - current poll, voting, live results",
    },
    {
        "name": "chapters",
        "description": "Story chapters - latest chapter and history",
    },
    {
        "name": "scheduler",
        "description": "Story loop control - status, manual cycle, start and stop",
    },
]

app = FastAPI(
    title="Bald Brothers Story Engine API",
    lifespan=lifespan,
    description="""
## Bald Brothers Story Engine API

Readers vote on what the Bald Brothers do next. When a poll closes, the
scheduler tallies the votes, a language model writes the next chapter, and a
new poll opens.

### Authentication
When `API_AUTH_ENABLED=true`, the `/scheduler/*` endpoints require an
`X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
# Start server
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

# Vote for the first option of the open poll
curl -X POST http://localhost:8000/polls/<poll_id>/vote \\
  -H "Content-Type: application/json" \\
  -d '{"choice": 0}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)

# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


# Scheduler control WITH authentication dependency (when enabled)
auth_dependency = [Depends(verify_api_key)] if API_AUTH_ENABLED else []

app.include_router(polls.router, prefix="/polls", tags=["polls"])
app.include_router(chapters.router, prefix="/chapters", tags=["chapters"])
app.include_router(
    scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
