"""
游戏相关的数据模式（出站视图）
"""

from typing import Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from music_madness.models import EliminationRecord, FinalMixEntry, GameSession, Player, Playlist, Song


class ViewModel(BaseModel):
    """以驼峰字段名输出的视图"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


class SongView(ViewModel):
    id: str
    title: str
    artist: str
    link: str
    eliminated: bool
    eliminated_round: Optional[int] = None
    eliminated_by: Optional[str] = None
    comment: str = ""

    @classmethod
    def from_song(cls, song: Song) -> "SongView":
        return cls(
            id=song.id,
            title=song.title,
            artist=song.artist,
            link=song.link,
            eliminated=song.eliminated,
            eliminated_round=song.eliminated_round,
            eliminated_by=song.eliminated_by_alias,
            comment=song.comment,
        )


class EliminationRecordView(ViewModel):
    song_id: str
    song_title: str
    eliminated_round: int
    eliminated_by: str
    comment: str

    @classmethod
    def from_record(cls, record: EliminationRecord) -> "EliminationRecordView":
        return cls(
            song_id=record.song_id,
            song_title=record.song_title,
            eliminated_round=record.eliminated_round,
            eliminated_by=record.eliminated_by,
            comment=record.comment,
        )


class PlaylistView(ViewModel):
    alias: str
    songs: List[SongView]
    elimination_log: List[EliminationRecordView]
    remaining: int

    @classmethod
    def from_playlist(cls, playlist: Playlist) -> "PlaylistView":
        return cls(
            alias=playlist.owner_alias,
            songs=[SongView.from_song(song) for song in playlist.songs],
            elimination_log=[EliminationRecordView.from_record(r) for r in playlist.elimination_log],
            remaining=playlist.remaining_count,
        )


class FinalMixEntryView(ViewModel):
    playlist_index: int
    origin_alias: str
    song: SongView
    votes: Optional[int] = None

    @classmethod
    def from_entry(cls, entry: FinalMixEntry, votes: Optional[int] = None) -> "FinalMixEntryView":
        return cls(
            playlist_index=entry.playlist_index,
            origin_alias=entry.origin_alias,
            song=SongView.from_song(entry.song),
            votes=votes,
        )


class PlayerView(ViewModel):
    alias: str
    connected: bool
    has_submitted_this_round: bool
    has_submitted_playlist: bool
    has_voted: bool

    @classmethod
    def from_player(cls, player: Player, session: GameSession) -> "PlayerView":
        return cls(
            alias=player.alias,
            connected=player.connected,
            has_submitted_this_round=player.has_submitted_this_round,
            has_submitted_playlist=session.playlist_owner_index(player.alias) is not None,
            has_voted=player.alias in session.votes,
        )


class ResultsView(ViewModel):
    winners: List[FinalMixEntryView]
    tally: Dict[int, int]


class GameSummary(ViewModel):
    """游戏列表条目"""
    game_id: str
    phase: str
    round: int
    players: List[str]

    @classmethod
    def from_session(cls, session: GameSession) -> "GameSummary":
        return cls(
            game_id=session.game_id,
            phase=session.phase,
            round=session.current_round,
            players=session.player_aliases(),
        )


class GameSnapshot(ViewModel):
    """游戏状态快照（不包含密码）"""
    game_id: str
    phase: str
    round: int
    max_rounds: int
    players: List[PlayerView]
    playlists: List[PlaylistView]
    assignment: Dict[str, int]
    final_mix: Optional[List[FinalMixEntryView]] = None
    results: Optional[ResultsView] = None
    anomalies: List[str] = []

    @classmethod
    def from_session(cls, session: GameSession) -> "GameSnapshot":
        return cls(
            game_id=session.game_id,
            phase=session.phase,
            round=session.current_round,
            max_rounds=session.max_rounds,
            players=[PlayerView.from_player(player, session) for player in session.players],
            playlists=playlist_views(session),
            assignment=dict(session.assignment),
            final_mix=final_mix_views(session),
            results=results_view(session),
            anomalies=list(session.anomalies),
        )


def playlist_views(session: GameSession) -> List[PlaylistView]:
    return [PlaylistView.from_playlist(playlist) for playlist in session.playlists]


def final_mix_views(session: GameSession) -> Optional[List[FinalMixEntryView]]:
    if session.final_mix is None:
        return None
    return [FinalMixEntryView.from_entry(entry) for entry in session.final_mix]


def results_view(session: GameSession) -> Optional[ResultsView]:
    if session.results is None:
        return None
    vote_counts = session.results["vote_counts"]
    return ResultsView(
        winners=[
            FinalMixEntryView.from_entry(entry, vote_counts.get(entry.playlist_index, 0))
            for entry in session.results["winners"]
        ],
        tally=dict(vote_counts),
    )
