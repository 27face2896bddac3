"""
Now-playing metadata for nightride.

Fetches run on a single worker thread. The main loop calls
``MetadataPoller.poll()`` once per tick, which never blocks: it picks up a
finished fetch if there is one and schedules the next when it is due.
"""
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

import requests

from nightride import __version__
from nightride.logging_config import get_logger, MetadataFetchFailed
from nightride.stations import Station
from nightride.state import UNKNOWN_TRACK, TrackMetadata

logger = get_logger('metadata')

USER_AGENT = f"nightride/{__version__}"


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_track(payload: Dict[str, Any], retrieved_at: float) -> TrackMetadata:
    """Build TrackMetadata from a decoded response body.

    Every field is optional; a body without artist and title is the
    unknown track.
    """
    artist = _text(payload.get("artist"))
    title = _text(payload.get("title"))
    if not (artist or title):
        return UNKNOWN_TRACK
    return TrackMetadata(
        artist=artist,
        title=title,
        album=_text(payload.get("album")),
        retrieved_at=retrieved_at,
    )


def fetch_track(session: requests.Session, url: str, timeout: float,
                clock: Callable[[], float] = time.time) -> TrackMetadata:
    """GET ``url`` and parse the now-playing JSON.

    Raises:
        MetadataFetchFailed: on network or HTTP errors and malformed bodies
    """
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        raise MetadataFetchFailed(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise MetadataFetchFailed(f"Malformed JSON from {url}: {e}") from e

    if not isinstance(payload, dict):
        raise MetadataFetchFailed(f"Unexpected payload from {url}: {type(payload).__name__}")
    return parse_track(payload, clock())


class MetadataPoller:
    """Keeps TrackMetadata fresh for the active station."""

    def __init__(
        self,
        interval: float = 15.0,
        timeout: float = 3.0,
        session: Optional[requests.Session] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        on_track_change: Optional[Callable[[TrackMetadata], None]] = None,
    ):
        self.interval = interval
        self.timeout = timeout
        self.on_track_change = on_track_change
        self._clock = clock
        self._wall_clock = wall_clock

        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        self._session = session
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="nightride-metadata"
        )

        self._station: Optional[Station] = None
        self._metadata: TrackMetadata = UNKNOWN_TRACK
        self._future: Optional[Future] = None
        self._next_due: float = 0.0

    @property
    def station(self) -> Optional[Station]:
        return self._station

    @property
    def metadata(self) -> TrackMetadata:
        return self._metadata

    def switch_station(self, station: Station) -> None:
        """Restart polling against ``station``.

        The current track becomes unknown and any fetch still in flight for
        the previous station is dropped.
        """
        if self._future is not None:
            self._future.cancel()
            self._future = None
        self._station = station
        self._metadata = UNKNOWN_TRACK
        self._next_due = self._clock()
        logger.debug(f"Polling metadata for {station.id}")

    def poll(self) -> bool:
        """Harvest a finished fetch and schedule the next one.

        Returns:
            True if the displayed track changed
        """
        changed = False
        if self._future is not None and self._future.done():
            future, self._future = self._future, None
            changed = self._harvest(future)

        if self._future is None and self._station is not None and self._clock() >= self._next_due:
            self._submit()
        return changed

    def _submit(self) -> None:
        station = self._station
        self._future = self._executor.submit(
            fetch_track, self._session, station.metadata_url, self.timeout, self._wall_clock
        )
        self._next_due = self._clock() + self.interval

    def _harvest(self, future: Future) -> bool:
        if future.cancelled():
            return False
        try:
            track = future.result()
        except MetadataFetchFailed as e:
            logger.warning(f"Metadata fetch failed, keeping last track: {e}")
            return False
        except Exception:
            logger.exception("Unexpected error in metadata fetch, keeping last track")
            return False

        previous = self._metadata
        self._metadata = track
        changed = (track.artist, track.title, track.album) != (previous.artist, previous.title, previous.album)
        if changed and not track.is_unknown:
            logger.info(f"Now playing: {track}")
            if self.on_track_change:
                self.on_track_change(track)
        return changed

    def shutdown(self) -> None:
        """Stop polling and close the HTTP session.

        A request already in flight runs to completion, bounded by
        ``timeout``, before the interpreter can exit.
        """
        if self._future is not None:
            self._future.cancel()
            self._future = None
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()
