from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Source(str, Enum):
    CHESS_COM = "Chess.com"
    LICHESS = "Lichess.org"
    PGN = "PGN"


@dataclass(frozen=True)
class SourceInfo:
    source: Source
    attempts: int
    placeholder: str
    submit_label: str
    shows_remaining: bool = True


SOURCES: Dict[Source, SourceInfo] = {
    Source.CHESS_COM: SourceInfo(
        Source.CHESS_COM, 3, "MagnusCarlsen", "Add Username"
    ),
    Source.LICHESS: SourceInfo(
        Source.LICHESS, 3, "DrNykterstein", "Add Username"
    ),
    Source.PGN: SourceInfo(
        Source.PGN, 1, "appyfizz", "Import PGN Game",
        shows_remaining=False,
    ),
}


def parse_source(raw: str) -> Optional[Source]:
    """Accept either the display value ("Lichess.org") or the member name."""
    raw = (raw or "").strip()
    for source in Source:
        if raw == source.value or raw.upper() == source.name:
            return source
    return None


class SourceCounters:
    """Remaining successful submissions per source, owned by one form."""

    def __init__(self, initial: Optional[Dict[Source, int]] = None):
        if initial is None:
            initial = {source: info.attempts for source, info in SOURCES.items()}
        self._left = dict(initial)

    def left(self, source: Source) -> int:
        return self._left.get(source, 0)

    def is_exhausted(self, source: Source) -> bool:
        return self.left(source) <= 0

    def decrement(self, source: Source) -> int:
        self._left[source] = max(0, self.left(source) - 1)
        return self._left[source]

    def as_dict(self) -> Dict[str, int]:
        return {source.value: self.left(source) for source in Source}
