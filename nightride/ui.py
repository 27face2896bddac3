"""
Status screen and desktop notifications for nightride.
"""
import shutil
import subprocess
import sys
from typing import List, Optional, TextIO

from nightride.logging_config import get_logger
from nightride.stations import Station
from nightride.state import PlaybackState, PlayerStatus, TrackMetadata

logger = get_logger('ui')

APP_TITLE: str = "Nightride FM - The Home of Synthwave"

C_HEADER = "\033[1m"
C_SECONDARY = "\033[90m"
C_RESET = "\033[0m"
CLEAR_SCREEN = "\033[2J\033[H"
HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"

HELP_LINE = "p pause  V/v volume  n next station  y search  q quit"

_STATUS_TEXT = {
    PlayerStatus.STOPPED: "stopped",
    PlayerStatus.LOADING: "loading",
    PlayerStatus.PLAYING: "playing",
    PlayerStatus.PAUSED: "paused",
}


def render(station: Station, playback: PlaybackState, track: TrackMetadata,
           width: Optional[int] = None) -> str:
    """Build the status screen as a single string."""
    if width is None:
        width = shutil.get_terminal_size().columns
    width = max(20, width)

    lines: List[str] = [
        f"{C_HEADER}{APP_TITLE.center(width)[:width]}{C_RESET}",
        "",
        f"  Station: {station.name}",
        f"  State:   {_STATUS_TEXT[playback.status]}",
        f"  Track:   {track}",
        f"  Volume:  {playback.volume}",
        "",
        f"{C_SECONDARY}  {HELP_LINE}{C_RESET}",
    ]
    return CLEAR_SCREEN + "\n".join(lines)


def draw(station: Station, playback: PlaybackState, track: TrackMetadata,
         out: TextIO = sys.stdout) -> None:
    out.write(render(station, playback, track))
    out.flush()


def send_notification(title: str, message: str, glyph: str = "🎵") -> None:
    """Send a desktop notification through notify-send, if installed."""
    notify_send = shutil.which("notify-send")
    if not notify_send:
        logger.debug("notify-send not found, skipping notification")
        return

    try:
        subprocess.run(
            [notify_send, "--app-name=nightride", f"{glyph} {title}", message],
            capture_output=True,
            check=False,
            timeout=2,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Notification failed: {e}")
