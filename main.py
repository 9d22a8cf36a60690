import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.database import engine
from models.base import Base
# Registered on Base.metadata before create_all
from models import account, chat, connection_request, user  # noqa: F401

from routers.auth import router as auth_router
from routers.user import router as user_router
from routers.discover import router as discover_router
from routers.requests import router as requests_router
from routers.chats import router as chats_router
from routers.location import router as location_router
from routers.health import router as health_router

app = FastAPI(
    title="Jamspot Backend",
    version="0.1.0",
    description="Find musicians nearby, connect and chat",
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("uvicorn.error")


@app.middleware("http")
async def log_request_time(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} completed in {process_time:.2f} ms"
    )
    return response

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(discover_router)
app.include_router(requests_router)
app.include_router(chats_router)
app.include_router(location_router)
app.include_router(health_router)


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/")
async def root():
    return {"message": "Jamspot Backend"}


@app.on_event("shutdown")
async def shutdown():
    # Close every pooled connection
    await engine.dispose()
