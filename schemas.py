"""
Database Schemas for Tic-Tac-Toe

Each Pydantic model represents a document in a MongoDB collection.

- Player -> "players"
- Game   -> "games" (moves are embedded)
- Score  -> "scores"

The store validators only check structure. These models also hold the game
rules a stored document has to respect: alternating turns starting with X,
each cell played once, a winner only when the board shows one.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from declarations import EMAIL_PATTERN
from rules import board_from_moves, check_winner


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """pymongo decodes dates as naive UTC; make them comparable with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_document(self) -> Dict[str, Any]:
        """Stored shape: absent optionals are left out instead of stored as null."""
        return self.model_dump(exclude_none=True)


class Player(Document):
    username: str = Field(..., min_length=3, max_length=64, description="Unique username, immutable")
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, description="Optional email (unique when present)")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash when authentication is enabled")
    created_at: datetime = Field(default_factory=utcnow)
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Move(BaseModel):
    cell: int = Field(..., ge=0, le=8, description="Board cell index 0..8")
    player: Literal["X", "O"]
    at: datetime = Field(default_factory=utcnow)

    normalize_at = field_validator("at")(as_utc)


class Game(Document):
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    playerX: Optional[str] = Field(None, description="Username or guest identifier for X")
    playerO: Optional[str] = Field(None, description="Username or guest identifier for O")
    playerX_id: Optional[ObjectId] = None
    playerO_id: Optional[ObjectId] = None
    winner: Optional[Literal["X", "O", "draw"]] = None
    moves: List[Move] = Field(default_factory=list, max_length=9)

    normalize_times = field_validator("started_at", "ended_at")(as_utc)

    @model_validator(mode="after")
    def check_game(self):
        if self.playerX is not None and self.playerX == self.playerO:
            raise ValueError("playerX and playerO must be different")

        cells = set()
        for i, move in enumerate(self.moves):
            expected = "X" if i % 2 == 0 else "O"
            if move.player != expected:
                raise ValueError(f"move {i} must be played by {expected}")
            if move.cell in cells:
                raise ValueError(f"cell {move.cell} played twice")
            cells.add(move.cell)
            if i and move.at < self.moves[i - 1].at:
                raise ValueError(f"move {i} is earlier than the move before it")
            if i < len(self.moves) - 1 and check_winner(board_from_moves(self.moves[:i + 1])):
                raise ValueError(f"moves continue after the game was decided at move {i}")

        if (self.ended_at is None) != (self.winner is None):
            raise ValueError("winner and ended_at must be set together")
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError("ended_at precedes started_at")
        if self.winner is not None and check_winner(board_from_moves(self.moves)) != self.winner:
            raise ValueError(f"board does not support winner {self.winner!r}")
        return self

    @property
    def finished(self) -> bool:
        return self.ended_at is not None

    def seats(self) -> Dict[str, Optional[str]]:
        return {"X": self.playerX, "O": self.playerO}


class Score(Document):
    user: str = Field(..., min_length=1, description="Username or guest identifier, unique")
    user_id: Optional[ObjectId] = None
    wins: int = Field(0, ge=0)
    losses: int = Field(0, ge=0)
    draws: int = Field(0, ge=0)
    last_updated: datetime = Field(default_factory=utcnow)

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws
