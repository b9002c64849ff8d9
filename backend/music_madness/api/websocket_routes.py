"""
WebSocket API路由
"""

import json
import logging

import pydantic
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from music_madness.core.config import settings
from music_madness.core.errors import GameError
from music_madness.schemas.message_schemas import (
    CreateGameRequest,
    GameStateRequest,
    JoinGameRequest,
    RejoinGameRequest,
    StartGameRequest,
    SubmitEliminationRequest,
    SubmitPlaylistRequest,
    SubmitVoteRequest,
)
from music_madness.services.game_service import GameService
from music_madness.services.session_repository import SessionRepository
from music_madness.services.websocket_service import WebSocketManager

logger = logging.getLogger(__name__)

router = APIRouter()

# 使用全局WebSocket连接管理器与游戏服务
_manager = None
_game_service = None

def get_websocket_manager() -> WebSocketManager:
    """获取全局WebSocket管理器实例"""
    global _manager
    if _manager is None:
        _manager = WebSocketManager()
    return _manager

def get_game_service() -> GameService:
    """获取全局游戏服务实例"""
    global _game_service
    if _game_service is None:
        repository = SessionRepository(
            active_ttl=settings.SESSION_TTL_SECONDS,
            finished_ttl=settings.FINISHED_SESSION_TTL_SECONDS,
        )
        _game_service = GameService(repository, get_websocket_manager())
    return _game_service

# 消息类型 → (请求模式, 处理方法名)
HANDLERS = {
    "createGame": (CreateGameRequest, "create_game"),
    "joinGame": (JoinGameRequest, "join_game"),
    "rejoinGame": (RejoinGameRequest, "rejoin_game"),
    "startGame": (StartGameRequest, "start_game"),
    "submitPlaylist": (SubmitPlaylistRequest, "submit_playlist"),
    "submitElimination": (SubmitEliminationRequest, "submit_elimination"),
    "submitVote": (SubmitVoteRequest, "submit_vote"),
    "finalVote": (SubmitVoteRequest, "submit_vote"),
    "getGameState": (GameStateRequest, "send_game_state"),
}


def _validation_message(error: pydantic.ValidationError) -> str:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        details.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(details) or "请求格式错误"


async def dispatch_message(game_service: GameService, connection_id: str, message_data: dict) -> None:
    """处理一条入站消息；错误只回传给发起连接"""
    manager = game_service.websocket_manager
    message_type = message_data.get("type") if isinstance(message_data, dict) else None

    if message_type == "ping":
        await manager.send_personal_message({
            "type": "pong",
            "timestamp": message_data.get("timestamp"),
        }, connection_id)
        return

    handler = HANDLERS.get(message_type)
    if handler is None:
        await manager.send_personal_message({
            "type": "error",
            "code": "unknown_message",
            "message": f"未知的消息类型: {message_type}",
        }, connection_id)
        return

    schema, method_name = handler
    try:
        request = schema.model_validate(message_data)
        await getattr(game_service, method_name)(connection_id, request)
    except pydantic.ValidationError as e:
        logger.info("连接 %s 的 %s 请求格式错误: %s", connection_id, message_type, e)
        await manager.send_personal_message({
            "type": "error",
            "code": "validation_error",
            "message": _validation_message(e),
        }, connection_id)
    except GameError as e:
        logger.info("连接 %s 的 %s 请求被拒绝: [%s] %s", connection_id, message_type, e.code, e.message)
        await manager.send_personal_message(e.to_event(), connection_id)


@router.websocket("/play")
async def websocket_play_endpoint(
    websocket: WebSocket,
    game_service: GameService = Depends(get_game_service),
):
    """游戏WebSocket连接端点"""
    manager = game_service.websocket_manager
    connection_id = await manager.connect(websocket)

    await manager.send_personal_message({
        "type": "connected",
        "connectionId": connection_id,
    }, connection_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                logger.info("收到无效JSON消息: %s", data[:200])
                await manager.send_personal_message({
                    "type": "error",
                    "code": "validation_error",
                    "message": "无效的JSON消息",
                }, connection_id)
                continue

            try:
                await dispatch_message(game_service, connection_id, message_data)
            except Exception:
                # 单个消息的意外错误不应断开连接，也不影响其他玩家
                logger.exception("处理消息时出错: %s", message_data.get("type") if isinstance(message_data, dict) else None)
                await manager.send_personal_message({
                    "type": "error",
                    "code": "internal_error",
                    "message": "服务器内部错误",
                }, connection_id)

    except WebSocketDisconnect:
        logger.info("连接 %s 断开", connection_id)
    finally:
        await game_service.handle_disconnect(connection_id)
