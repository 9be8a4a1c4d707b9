# server/models/entities.py
"""Game entity models and data classes."""

from dataclasses import dataclass
from enum import Enum


class MatchState(str, Enum):
    """Lifecycle of a single match."""

    LOBBY = "LOBBY"
    PLAYING = "PLAYING"
    GAMEOVER = "GAMEOVER"


@dataclass
class Player:
    """Represents a contestant, either the local player or a bot."""

    id: str
    name: str
    x: float
    y: float
    isAlive: bool = True
    wpm: int = 0
    accuracy: int = 100
    health: float = 100
    isBot: bool = False


@dataclass
class Guard:
    """Represents a pursuit entity spawned by a typing strike."""

    id: str
    x: float
    y: float
    targetId: str  # looked up on every tick, never held directly
    speed: float


@dataclass
class SafeZone:
    """Circular region outside of which entities take damage."""

    x: float
    y: float
    radius: float


@dataclass(frozen=True)
class CodeSnippet:
    """A piece of source code to transcribe."""

    code: str
    language: str
    repo: str
    fileName: str
    gitUrl: str  # origin identifier, used to avoid repeats


@dataclass(frozen=True)
class GameStats:
    """End-of-match results for the local player."""

    rank: int
    totalPlayers: int
    wpm: int
    accuracy: int
    timeSurvived: int


@dataclass(frozen=True)
class HighScore:
    """Best recorded result."""

    wpm: int
    accuracy: int


@dataclass
class LogEntry:
    """A line of the in-game terminal."""

    msg: str
    type: str = "info"  # one of "err", "sys", "info"
