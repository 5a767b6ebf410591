import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .src.routers import repair, runs
from .src.config import settings
from .src.logging import jlog
from .otel import init_tracing

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    jlog(
        event="service_start",
        default_prefix=settings.default_prefix,
        timestamp_unit=settings.timestamp_unit,
        dry_run=settings.dry_run,
        concurrency=settings.fixer_concurrency,
    )
    yield

app = FastAPI(title="Notification Format Fixer API", version="1.0.0", lifespan=lifespan)

# Routers
app.include_router(repair.router, prefix="/api/v1")
app.include_router(runs.router, prefix="/api/v1")

os.environ.setdefault("SERVICE_NAME", settings.service_name)
tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.get("/health")
def health():
    return {"status": "ok", "service": settings.service_name}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
