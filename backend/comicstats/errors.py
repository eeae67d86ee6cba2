"""Error taxonomy for the stats engine.

Callers only ever see two kinds of failure: the store could not be reached
(``CommunicationError``) or the comic has never been seen
(``ComicNotFoundError``). The underlying cause of a communication failure is
kept as a ``StoreDiagnostic`` on the connection for logging and inspection.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict


class StatsError(Exception):
    """Base class for errors surfaced by the stats engine."""

    message = "stats error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class CommunicationError(StatsError):
    message = "communication with redis failed"


class ComicNotFoundError(StatsError):
    message = "comic not found in redis"

    def __init__(self, comic_id: str):
        super().__init__()
        self.comic_id = comic_id


@dataclass(frozen=True)
class StoreDiagnostic:
    command: str
    kind: str
    cause: str
    at: float

    @classmethod
    def from_exception(cls, command: str, exc: BaseException, at: float) -> "StoreDiagnostic":
        return cls(command=command, kind=type(exc).__name__, cause=str(exc), at=at)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"command={self.command} kind={self.kind} cause={self.cause!r}"


__all__ = [
    "StatsError",
    "CommunicationError",
    "ComicNotFoundError",
    "StoreDiagnostic",
]
