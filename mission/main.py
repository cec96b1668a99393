# mission/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from redis.exceptions import RedisError

from mission.settings import get_settings
from mission.store.base import StateStore
from mission.store.redis_repo import RedisRepo
from mission.sync.host import HostTransport
from mission.transport.admin import router as admin_router
from mission.transport.rooms import router as rooms_router
from mission.transport.ws import router as ws_router
from mission.transport.ws_manager import WSManager

logger = logging.getLogger(__name__)


def create_app(repo: Optional[StateStore] = None) -> FastAPI:
    """
    Build the host relay + registry app.
    Pass `repo` to run on an injected store (tests, single-process demos);
    otherwise a Redis client is opened on startup.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME)
    allowed_origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.wsman = WSManager()
    app.state.redis = None
    app.state.repo = repo
    # admin-side writer: store first, then SYNC_FULL / ROOM_CLOSED to relay peers
    app.state.host = HostTransport(repo, app.state.wsman) if repo is not None else None

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.repo is not None:
            return
        r = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        app.state.redis = r
        app.state.repo = RedisRepo(r, room_ttl_sec=settings.ROOM_TTL_SEC)
        app.state.host = HostTransport(app.state.repo, app.state.wsman)
        try:
            await r.ping()
        except RedisError:
            logger.warning("redis at %s unreachable on startup", settings.REDIS_URL, exc_info=True)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if app.state.host is not None:
            await app.state.host.close()
        r: Optional[Redis] = app.state.redis
        if r is not None:
            await r.aclose()

    @app.get("/health")
    async def health():
        r: Optional[Redis] = app.state.redis
        if r is None:
            return {"ok": True, "store": type(app.state.repo).__name__}
        try:
            pong = await r.ping()
        except RedisError as e:
            return {"ok": False, "redis": str(e)}
        return {"ok": True, "redis": str(pong)}

    app.include_router(ws_router)
    app.include_router(rooms_router)
    app.include_router(admin_router)
    return app


app = create_app()
