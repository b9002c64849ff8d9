#!/usr/bin/env python3
"""
Music Madness - 后端主入口
"""

import asyncio
import logging

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from music_madness.api import api_router
from music_madness.api.websocket_routes import get_game_service
from music_madness.core.config import settings
from music_madness.services.game_service import GameService

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="歌单淘汰游戏后端API",
    version=settings.VERSION,
)

# CORS设置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册API路由
app.include_router(api_router, prefix="/api")

_reaper_task = None

async def reap_sessions_forever(interval: float):
    """定期回收过期的游戏会话"""
    game_service = get_game_service()
    while True:
        await asyncio.sleep(interval)
        game_service.reap_expired()

@app.on_event("startup")
async def startup_event():
    """应用启动时的初始化"""
    global _reaper_task
    logger.info("启动 %s 后端服务...", settings.APP_NAME)
    _reaper_task = asyncio.create_task(reap_sessions_forever(settings.REAPER_INTERVAL_SECONDS))

@app.on_event("shutdown")
async def shutdown_event():
    """停止会话回收任务"""
    if _reaper_task is not None:
        _reaper_task.cancel()

@app.get("/")
async def root():
    """根路径健康检查"""
    return {"message": f"{settings.APP_NAME} 后端运行中", "status": "healthy"}

@app.get("/health")
async def health_check(game_service: GameService = Depends(get_game_service)):
    """健康检查端点"""
    return {
        "status": "healthy",
        "service": "music-madness",
        "games": len(game_service.repository),
    }

if __name__ == "__main__":
    uvicorn.run(
        "music_madness.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
