"""
WebSocket入站消息的数据模式

所有字段在边界处校验，校验失败时不会修改任何游戏状态。
"""

from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from music_madness.core.config import settings
from music_madness.models import ByPlaylistIndex, BySongId, Choice


class CamelModel(BaseModel):
    """使用驼峰字段名的请求模式"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class GameRequest(CamelModel):
    game_id: str = Field(min_length=1, max_length=64)

    @field_validator("game_id")
    @classmethod
    def strip_game_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("游戏代码不能为空")
        return value


class PlayerRequest(GameRequest):
    alias: str

    @field_validator("alias")
    @classmethod
    def check_alias(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("别名不能为空")
        if len(value) > settings.MAX_ALIAS_LENGTH:
            raise ValueError(f"别名最长 {settings.MAX_ALIAS_LENGTH} 个字符")
        return value


class CreateGameRequest(PlayerRequest):
    password: str = ""


class JoinGameRequest(PlayerRequest):
    password: str = ""


class RejoinGameRequest(PlayerRequest):
    pass


class StartGameRequest(GameRequest):
    alias: Optional[str] = None


class GameStateRequest(GameRequest):
    pass


class SongInput(BaseModel):
    """歌单条目对象形式"""
    title: str = ""
    name: Optional[str] = None
    artist: str = ""
    link: str = ""

    @model_validator(mode="after")
    def require_title(self) -> "SongInput":
        self.title = (self.title or self.name or "").strip()
        if not self.title:
            raise ValueError("歌曲名称不能为空")
        return self


class SubmitPlaylistRequest(PlayerRequest):
    playlist: List[Union[SongInput, str]] = Field(min_length=1)

    @field_validator("playlist")
    @classmethod
    def check_length(cls, value: List[Union[SongInput, str]]) -> List[Union[SongInput, str]]:
        if len(value) > settings.MAX_PLAYLIST_LENGTH:
            raise ValueError(f"歌单最多 {settings.MAX_PLAYLIST_LENGTH} 首歌曲")
        for entry in value:
            if isinstance(entry, str) and not entry.strip():
                raise ValueError("歌曲名称不能为空")
        return value


class SubmitEliminationRequest(PlayerRequest):
    playlist_index: Optional[int] = Field(default=None, ge=0)  # 缺省时使用本轮分配的歌单
    eliminated_song_index: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("eliminatedSongIndex", "songIndex", "eliminated_song_index")
    )
    eliminated_song_id: Optional[str] = None
    comment: str = ""

    @field_validator("comment")
    @classmethod
    def check_comment(cls, value: str) -> str:
        value = value.strip()
        if len(value) > settings.MAX_COMMENT_LENGTH:
            raise ValueError(f"评论最长 {settings.MAX_COMMENT_LENGTH} 个字符")
        return value

    @model_validator(mode="after")
    def require_song(self) -> "SubmitEliminationRequest":
        if self.eliminated_song_index is None and not self.eliminated_song_id:
            raise ValueError("需要 eliminatedSongIndex 或 eliminatedSongId")
        return self


def parse_choice(value: Any) -> Choice:
    """把客户端的投票选择解析为 ByPlaylistIndex 或 BySongId"""
    if isinstance(value, (ByPlaylistIndex, BySongId)):
        return value
    if isinstance(value, bool):
        raise ValueError("无法识别的投票选择")
    if isinstance(value, int):
        return ByPlaylistIndex(value)
    if isinstance(value, str) and value.strip():
        return BySongId(value.strip())
    if isinstance(value, dict):
        if isinstance(value.get("playlistIndex"), int) and not isinstance(value.get("playlistIndex"), bool):
            return ByPlaylistIndex(value["playlistIndex"])
        song_id = value.get("songId") or value.get("id")
        if not song_id and isinstance(value.get("song"), dict):
            song_id = value["song"].get("id")
        if isinstance(song_id, str) and song_id:
            return BySongId(song_id)
    raise ValueError("无法识别的投票选择")


class SubmitVoteRequest(PlayerRequest):
    choice: Any = Field(validation_alias=AliasChoices("choice", "chosen"))

    @field_validator("choice", mode="before")
    @classmethod
    def to_choice(cls, value: Any) -> Choice:
        return parse_choice(value)
