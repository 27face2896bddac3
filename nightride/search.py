"""
Search links for the current track.
"""
import shutil
import subprocess
from urllib.parse import quote

from nightride.logging_config import get_logger, NoTrackAvailable
from nightride.state import TrackMetadata

logger = get_logger('search')

YT_MUSIC_SEARCH_URL: str = "https://music.youtube.com/search?q="


def build_search_url(track: TrackMetadata, template: str = YT_MUSIC_SEARCH_URL) -> str:
    """Build a search URL for ``track``.

    The query is "artist title" with every reserved character
    percent-encoded, appended to ``template``.

    Raises:
        NoTrackAvailable: if the track is unknown
    """
    if track.is_unknown:
        raise NoTrackAvailable("No track is playing")

    query = " ".join(part.strip() for part in (track.artist, track.title) if part and part.strip())
    if not query:
        raise NoTrackAvailable("Track has no artist or title")
    return f"{template}{quote(query, safe='')}"


def open_search_link(url: str) -> bool:
    """Open ``url`` with the desktop opener.

    Returns:
        True if the opener was launched
    """
    opener = shutil.which("xdg-open")
    if not opener:
        logger.warning("xdg-open not found, cannot open search link")
        return False

    try:
        subprocess.Popen(
            [opener, url],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        logger.warning(f"Failed to open search link: {e}")
        return False

    logger.info(f"Opened search link: {url}")
    return True
