"""
State containers for nightride.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Default volume for a fresh install
DEFAULT_VOLUME: int = 50
VOLUME_MIN: int = 0
VOLUME_MAX: int = 100


def clamp_volume(volume: int) -> int:
    """Clamp a volume to the valid 0-100 range."""
    return max(VOLUME_MIN, min(VOLUME_MAX, int(volume)))


class PlayerStatus(Enum):
    """Lifecycle of the external player as seen by the controller."""
    STOPPED = "stopped"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class PlaybackState:
    """Playback-related state.

    Owned by the player controller. Everything else receives copies.
    """
    station_id: str
    status: PlayerStatus = PlayerStatus.STOPPED
    volume: int = DEFAULT_VOLUME

    @property
    def is_playing(self) -> bool:
        return self.status is PlayerStatus.PLAYING


@dataclass(frozen=True)
class SessionState:
    """Persisted snapshot of the station and volume."""
    last_station_id: str
    last_volume: int = DEFAULT_VOLUME


@dataclass(frozen=True)
class TrackMetadata:
    """Currently known track for the active station."""
    artist: Optional[str] = None
    title: Optional[str] = None
    album: Optional[str] = None
    retrieved_at: Optional[float] = None

    @property
    def is_unknown(self) -> bool:
        return not (self.artist or self.title)

    def __str__(self) -> str:
        if self.is_unknown:
            return "..."
        text = self.title or ""
        if self.artist:
            text = f"{text} by {self.artist}" if text else self.artist
        if self.album:
            text = f"{text} ({self.album})"
        return text


UNKNOWN_TRACK = TrackMetadata()
