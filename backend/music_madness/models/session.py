"""
游戏会话数据模型
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from music_madness.models.final_mix import FinalMixEntry
from music_madness.models.player import Player
from music_madness.models.playlist import Playlist
from music_madness.services.state_machine import SessionState, SessionStateMachine


@dataclass
class GameSession:
    """游戏会话，由协调器独占，每个游戏代码一个"""
    game_id: str
    password: str = ""
    machine: SessionStateMachine = field(default_factory=SessionStateMachine)
    players: List[Player] = field(default_factory=list)
    playlists: List[Playlist] = field(default_factory=list)
    assignment: Dict[str, int] = field(default_factory=dict)              # 当前轮：别名 → 歌单序号
    assignment_history: Dict[str, Set[int]] = field(default_factory=dict)  # 累计分配记录
    self_assigned: Set[str] = field(default_factory=set)                   # 本轮经兜底路径分到自己歌单的别名
    max_rounds: int = 0
    final_mix: Optional[List[FinalMixEntry]] = None
    votes: Dict[str, int] = field(default_factory=dict)                    # 别名 → 歌单序号
    results: Optional[Dict[str, Any]] = None
    anomalies: List[str] = field(default_factory=list)
    pending_advance: Optional[Any] = None                                  # DelayedTask
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)

    @property
    def phase(self) -> str:
        return self.machine.phase

    @property
    def current_round(self) -> int:
        return self.machine.round

    @property
    def state(self) -> SessionState:
        return self.machine.state

    @property
    def is_finished(self) -> bool:
        return self.machine.state is SessionState.FINISHED

    def player_aliases(self) -> List[str]:
        return [player.alias for player in self.players]

    def playlist_owner_index(self, alias: str) -> Optional[int]:
        for index, playlist in enumerate(self.playlists):
            if playlist.owner_alias == alias:
                return index
        return None

    def record_anomaly(self, message: str) -> None:
        self.anomalies.append(f"[{self.phase}] {message}")

    def cancel_pending_advance(self) -> None:
        if self.pending_advance is not None:
            self.pending_advance.cancel()
            self.pending_advance = None
