from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

from .time_utils import require_utc


class PlayerCreate(BaseModel):
    name: str = Field(
        ..., min_length=1, max_length=50, pattern=r"^[A-Za-z0-9 '_-]+$"
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("name must be a string")
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("name must not be empty")
        return trimmed


class PlayerOut(BaseModel):
    id: str
    name: str
    rating: float
    games_played: int
    wins: int
    losses: int
    win_rate: float
    created_at: Optional[datetime] = None


class PlayerNameOut(BaseModel):
    id: str
    name: str


class PlayerListOut(BaseModel):
    players: List[PlayerOut]
    total: int
    limit: int
    offset: int


class HeadToHeadOut(BaseModel):
    opponentId: str
    opponentName: str
    totalGames: int
    wins: int
    losses: int


class StreakSummary(BaseModel):
    current: int
    type: Optional[Literal["win", "loss"]] = None
    longestWin: int
    longestLoss: int


class PlayerStatsOut(BaseModel):
    player: PlayerOut
    biggestGain: float
    biggestLoss: float
    streak: StreakSummary
    rollingWinPct: List[float]
    headToHead: List[HeadToHeadOut]


class RatingHistoryPoint(BaseModel):
    matchId: Optional[str] = None
    playedAt: Optional[datetime] = None
    rating: float
    result: Literal["start", "win", "loss"]


class SetScore(BaseModel):
    A: int
    B: int

    @model_validator(mode="before")
    def _coerce(cls, value: Any) -> Dict[str, int]:
        """Allow incoming set scores to be provided as tuples or objects."""
        if isinstance(value, dict):
            return value
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return {"A": value[0], "B": value[1]}
        if hasattr(value, "A") or hasattr(value, "B"):
            return {"A": getattr(value, "A", None), "B": getattr(value, "B", None)}
        raise TypeError("Set scores must be a mapping or 2-item tuple/list.")


class MatchCreate(BaseModel):
    player1Id: str = Field(..., min_length=1)
    player2Id: str = Field(..., min_length=1)
    sets: List[SetScore]
    playedAt: Optional[datetime] = None

    @field_validator("playedAt")
    def _normalize_played_at(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="playedAt")


class MatchOut(BaseModel):
    id: str
    player1: PlayerNameOut
    player2: PlayerNameOut
    winnerId: str
    player1SetsWon: int
    player2SetsWon: int
    sets: List[SetScore]
    player1RatingBefore: float
    player2RatingBefore: float
    player1RatingAfter: float
    player2RatingAfter: float
    ratingChange: float
    ratingFormula: str
    playedAt: datetime


class MatchListOut(BaseModel):
    matches: List[MatchOut]
    total: int
    limit: int
    offset: int


class MatchMergeIn(BaseModel):
    matchIds: List[str] = Field(..., min_length=2)
    formula: Optional[str] = None


class RecalculationOut(BaseModel):
    formula: str
    players: int
    matches: int
    dryRun: bool = False


class UserOut(BaseModel):
    id: str
    username: str
    is_admin: bool
