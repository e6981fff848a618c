"""
Domain models shared by the interval engine, the services and the HTTP shell.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SessionKind(str, Enum):
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self is not SessionKind.WORK

    @property
    def label(self) -> str:
        return "Focus Time" if self is SessionKind.WORK else "Break Time"


@dataclass(frozen=True)
class Session:
    """One work or break interval; ``0 <= remaining_seconds <= duration_seconds``."""
    kind: SessionKind
    duration_seconds: int
    remaining_seconds: int

    @classmethod
    def fresh(cls, kind: SessionKind, duration_seconds: int) -> "Session":
        return cls(kind, duration_seconds, duration_seconds)

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - self.remaining_seconds


@dataclass(frozen=True)
class EngineState:
    """Read-only snapshot of the interval engine."""
    session: Session
    is_running: bool
    completed_work_sessions: int
    long_break_interval: int

    @property
    def progress_percent(self) -> float:
        if self.session.duration_seconds <= 0:
            return 0.0
        return round(100.0 * self.session.elapsed_seconds / self.session.duration_seconds, 2)

    @property
    def session_number(self) -> int:
        """1-based number of the work cycle in progress."""
        return self.completed_work_sessions + 1

    def to_dict(self) -> Dict[str, Any]:
        minutes, seconds = divmod(self.session.remaining_seconds, 60)
        return {
            "kind": self.session.kind.value,
            "label": self.session.kind.label,
            "duration_seconds": self.session.duration_seconds,
            "remaining_seconds": self.session.remaining_seconds,
            "remaining_display": f"{minutes:02d}:{seconds:02d}",
            "is_running": self.is_running,
            "completed_work_sessions": self.completed_work_sessions,
            "long_break_interval": self.long_break_interval,
            "progress_percent": self.progress_percent,
            "session_number": self.session_number,
        }


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted whenever one session replaces another."""
    from_kind: SessionKind
    to_kind: SessionKind
    completed_work_sessions: int
    reason: str = "completed"  # "completed" | "skipped"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_kind": self.from_kind.value,
            "to_kind": self.to_kind.value,
            "completed_work_sessions": self.completed_work_sessions,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Display-only view of the ``/me/player`` payload."""
    track_name: Optional[str]
    artist_names: Tuple[str, ...]
    is_playing: bool
    device_id: Optional[str]
    device_name: Optional[str]
    volume_percent: Optional[int]
    context_uri: Optional[str]
    fetched_at: float = field(default_factory=time.time)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], fetched_at: Optional[float] = None) -> "PlaybackSnapshot":
        item = payload.get("item") or {}
        device = payload.get("device") or {}
        context = payload.get("context") or {}
        artists: List[str] = [a.get("name") for a in item.get("artists") or [] if a.get("name")]
        return cls(
            track_name=item.get("name"),
            artist_names=tuple(artists),
            is_playing=bool(payload.get("is_playing")),
            device_id=device.get("id"),
            device_name=device.get("name"),
            volume_percent=device.get("volume_percent"),
            context_uri=context.get("uri"),
            fetched_at=fetched_at if fetched_at is not None else time.time(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track_name": self.track_name,
            "artist_names": list(self.artist_names),
            "is_playing": self.is_playing,
            "device_id": self.device_id,
            "device_name": self.device_name,
            "volume_percent": self.volume_percent,
            "context_uri": self.context_uri,
            "fetched_at": self.fetched_at,
        }
