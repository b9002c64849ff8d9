"""
应用配置模块
"""

from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """应用设置"""

    # 基础设置
    APP_NAME: str = "Music Madness"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # 服务器设置
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # 游戏设置
    PHASE_CHANGE_DELAY: float = 0.5  # 进入新阶段前的延迟（秒），让最后提交的客户端先渲染确认
    MAX_ALIAS_LENGTH: int = 32
    MAX_PLAYLIST_LENGTH: int = 50
    MAX_COMMENT_LENGTH: int = 500
    ALLOW_DEGENERATE_SESSIONS: bool = True  # 是否允许少于2个歌单的游戏进入淘汰阶段

    # 会话回收设置
    SESSION_TTL_SECONDS: int = 6 * 60 * 60
    FINISHED_SESSION_TTL_SECONDS: int = 30 * 60
    REAPER_INTERVAL_SECONDS: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = True

# 全局设置实例
settings = Settings()
