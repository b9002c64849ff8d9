"""
游戏查询API路由
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from music_madness.api.websocket_routes import get_game_service
from music_madness.core.errors import GameNotFound
from music_madness.schemas.game_schemas import GameSummary
from music_madness.services.final_mix_service import build_elimination_history
from music_madness.services.game_service import GameService

router = APIRouter()

@router.get("/")
async def list_games(game_service: GameService = Depends(get_game_service)) -> List[dict]:
    """获取游戏列表"""
    summaries: List[GameSummary] = game_service.list_games()
    return [summary.dump() for summary in summaries]

@router.get("/{game_id}")
async def get_game(game_id: str, game_service: GameService = Depends(get_game_service)) -> dict:
    """获取游戏状态快照"""
    try:
        return game_service.snapshot(game_id).dump()
    except GameNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

@router.get("/{game_id}/history")
async def get_elimination_history(game_id: str, game_service: GameService = Depends(get_game_service)) -> dict:
    """获取每个歌单的淘汰历史"""
    session = game_service.repository.find(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"游戏 {game_id} 不存在")
    return {
        "gameId": session.game_id,
        "phase": session.phase,
        "playlists": build_elimination_history(session),
    }

@router.delete("/{game_id}")
async def delete_game(game_id: str, game_service: GameService = Depends(get_game_service)) -> dict:
    """删除游戏"""
    if game_service.remove_game(game_id) is None:
        raise HTTPException(status_code=404, detail=f"游戏 {game_id} 不存在")
    return {"message": "游戏已删除", "gameId": game_id}
