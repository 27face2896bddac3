"""
Key handling for nightride.
"""
import os
import select
import sys
from enum import Enum
from typing import Callable, Dict, Optional, TextIO

from nightride.controller import PlayerController
from nightride.logging_config import get_logger, NoTrackAvailable, PlayerCommandError
from nightride.search import YT_MUSIC_SEARCH_URL, build_search_url, open_search_link
from nightride.stations import StationRegistry
from nightride.state import TrackMetadata, UNKNOWN_TRACK

logger = get_logger('keys')

ESC: str = "\033"


class Action(Enum):
    TOGGLE_PAUSE = "toggle_pause"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    OPEN_SEARCH = "open_search"
    NEXT_STATION = "next_station"
    QUIT = "quit"


DEFAULT_KEYMAP: Dict[str, Action] = {
    "p": Action.TOGGLE_PAUSE,
    " ": Action.TOGGLE_PAUSE,
    "V": Action.VOLUME_UP,
    "+": Action.VOLUME_UP,
    "=": Action.VOLUME_UP,
    "v": Action.VOLUME_DOWN,
    "-": Action.VOLUME_DOWN,
    "_": Action.VOLUME_DOWN,
    "y": Action.OPEN_SEARCH,
    "n": Action.NEXT_STATION,
    "q": Action.QUIT,
    ESC: Action.QUIT,
}


def _read_char(fd: int) -> str:
    # Must bypass the stream buffer or select() misses pending bytes
    return os.read(fd, 1).decode("utf-8", errors="replace")


def read_key(stream: TextIO, timeout: float) -> Optional[str]:
    """Read one key from ``stream``, waiting at most ``timeout`` seconds.

    Escape sequences (arrow keys and the like) come back whole so they
    don't get mistaken for a bare Esc.
    """
    try:
        fd = stream.fileno()
        if not select.select([fd], [], [], timeout)[0]:
            return None
        ch = _read_char(fd)
    except (InterruptedError, OSError, ValueError):
        return None

    if ch == ESC:
        try:
            while len(ch) < 3 and select.select([fd], [], [], 0)[0]:
                nxt = _read_char(fd)
                if not nxt:
                    break
                ch += nxt
        except (InterruptedError, OSError):
            pass
    return ch or None


class InputDispatcher:
    """Turns key presses into player operations."""

    def __init__(
        self,
        controller: PlayerController,
        registry: StationRegistry,
        track_source: Callable[[], TrackMetadata] = lambda: UNKNOWN_TRACK,
        volume_step: int = 5,
        search_url: str = YT_MUSIC_SEARCH_URL,
        opener: Callable[[str], bool] = open_search_link,
        keymap: Optional[Dict[str, Action]] = None,
        stream: Optional[TextIO] = None,
        timeout: float = 0.05,
    ):
        self.controller = controller
        self.registry = registry
        self.track_source = track_source
        self.volume_step = volume_step
        self.search_url = search_url
        self.opener = opener
        self.keymap = keymap if keymap is not None else dict(DEFAULT_KEYMAP)
        self.stream = stream if stream is not None else sys.stdin
        self.timeout = timeout

    def poll(self) -> Optional[str]:
        return read_key(self.stream, self.timeout)

    def dispatch(self, key: Optional[str]) -> Optional[Action]:
        """Run the action bound to ``key``.

        Returns:
            The action performed, or None for unbound keys
        """
        if key is None:
            return None
        action = self.keymap.get(key)
        if action is None:
            return None

        try:
            if action is Action.TOGGLE_PAUSE:
                self.controller.toggle_play_pause()
            elif action is Action.VOLUME_UP:
                self.controller.set_volume(self.volume_step)
            elif action is Action.VOLUME_DOWN:
                self.controller.set_volume(-self.volume_step)
            elif action is Action.NEXT_STATION:
                current = self.controller.get_state().station_id
                self.controller.start(self.registry.next(current))
            elif action is Action.OPEN_SEARCH:
                self._open_search()
        except PlayerCommandError as e:
            logger.warning(f"Player rejected {action.value}: {e}")

        return action

    def _open_search(self) -> None:
        try:
            url = build_search_url(self.track_source(), self.search_url)
        except NoTrackAvailable:
            logger.debug("No track to search for")
            return
        self.opener(url)
