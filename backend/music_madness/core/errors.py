"""
游戏错误类型

所有错误都只回传给发起请求的连接，不影响同一游戏中的其他玩家。
"""


class GameError(Exception):
    """游戏错误基类"""

    code = "game_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_event(self) -> dict:
        """转换为发送给客户端的error通知"""
        return {"type": "error", "message": self.message, "code": self.code}


class ValidationError(GameError):
    """字段缺失或格式错误，在任何修改之前拒绝"""
    code = "validation_error"


class InvalidSongIndex(ValidationError):
    code = "invalid_song_index"


class PhaseError(GameError):
    """当前阶段不允许该操作"""
    code = "phase_error"


class WrongPhase(PhaseError):
    code = "wrong_phase"


class AssignmentError(GameError):
    """玩家无权操作目标歌单"""
    code = "assignment_error"


class NotAssigned(AssignmentError):
    code = "not_assigned"


class OwnPlaylist(AssignmentError):
    code = "own_playlist"


class StateConflictError(GameError):
    """重复提交、歌曲已淘汰、游戏已存在等冲突"""
    code = "state_conflict"


class AlreadyEliminated(StateConflictError):
    code = "already_eliminated"


class AlreadySubmitted(StateConflictError):
    code = "already_submitted"


class LastSongStanding(StateConflictError):
    code = "last_song_standing"


class DuplicatePlaylist(StateConflictError):
    code = "duplicate_playlist"


class GameAlreadyExists(StateConflictError):
    code = "game_exists"


class AliasTaken(StateConflictError):
    code = "alias_taken"


class AccessDenied(GameError):
    """游戏密码错误"""
    code = "access_denied"


class NotFoundError(GameError):
    code = "not_found"


class GameNotFound(NotFoundError):
    code = "game_not_found"


class PlayerNotFound(NotFoundError):
    code = "player_not_found"
